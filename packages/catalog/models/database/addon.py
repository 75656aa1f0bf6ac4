"""
Database entities for the add-on catalog.
"""

from sqlalchemy import (
    Column,
    String,
    Text,
    Float,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class AddonEntity(Base):
    """
    Purchasable add-on. Attaching it to a subscription raises that
    subscription's quota for resource_type_id by the attached amount.
    """

    __tablename__ = "addons"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=False, server_default="")
    resource_type_id = Column(
        BigIntegerType, ForeignKey("resource_types.id"), nullable=False, index=True
    )
    default_amount = Column(Float, nullable=False)
    default_paid = Column(Boolean, nullable=False, server_default="1", default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class AddonRateEntity(Base):
    __tablename__ = "addon_rates"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    addon_id = Column(
        BigIntegerType, ForeignKey("addons.id", ondelete="CASCADE"), nullable=False
    )
    rate = Column(Float, nullable=False)
    effective_date = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("addon_id", "effective_date", name="uq_addon_rates_addon_date"),
    )
