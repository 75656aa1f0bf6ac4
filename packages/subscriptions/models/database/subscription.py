"""
Database entity for subscriptions.
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class SubscriptionEntity(Base):
    """
    A user's subscription to a plan over an effective window.

    The subscription is active while now is in
    [effective_start_date, effective_end_date), or from the start onward when
    effective_end_date is NULL. Nothing marks expiry; the window is
    evaluated at query time.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        BigIntegerType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    plan_id = Column(BigIntegerType, ForeignKey("plans.id"), nullable=False)

    effective_start_date = Column(DateTime(timezone=True), nullable=False)
    effective_end_date = Column(DateTime(timezone=True), nullable=True)
    paid = Column(Boolean, nullable=False, server_default="1", default=True)

    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_modified_by = Column(String(255), nullable=False)
    last_modified_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_subscriptions_user_start", "user_id", "effective_start_date"),
    )
