from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class UpdateEntity(Base):
    """
    Write-once audit record of a SET/ADD request against a user's usage or
    quota. The current value lives in quotas/usages, not here.
    """

    __tablename__ = "updates"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        BigIntegerType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    resource_type_id = Column(
        BigIntegerType, ForeignKey("resource_types.id"), nullable=False
    )
    operation = Column(String(10), nullable=False)  # ADD, SET
    value_type = Column(String(20), nullable=False)  # usages, quotas
    value = Column(Float, nullable=False)
    effective_date = Column(DateTime(timezone=True), nullable=False)

    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_updates_user_created", "user_id", "created_at"),)
