from sqlalchemy import Column, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class SubscriptionAddonEntity(Base):
    """
    An add-on attached to a subscription. amount starts at the add-on's
    default and is what the linked quota was raised by.
    """

    __tablename__ = "subscription_addons"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    addon_id = Column(
        BigIntegerType, ForeignKey("addons.id"), nullable=False, index=True
    )
    addon_rate_id = Column(
        BigIntegerType, ForeignKey("addon_rates.id", ondelete="SET NULL"), nullable=True
    )
    amount = Column(Float, nullable=False)
    paid = Column(Boolean, nullable=False, server_default="1", default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
