"""
Database entities for the per-subscription quota and usage ledgers.

Each holds exactly one current value per (resource type, subscription);
writers go through INSERT ... ON CONFLICT on that pair.
"""

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class QuotaEntity(Base):
    __tablename__ = "quotas"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    resource_type_id = Column(
        BigIntegerType, ForeignKey("resource_types.id"), nullable=False
    )
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quota = Column(Float, nullable=False, default=0)

    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_modified_by = Column(String(255), nullable=False)
    last_modified_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "resource_type_id",
            "subscription_id",
            name="uq_quotas_resource_type_subscription",
        ),
    )


class UsageEntity(Base):
    __tablename__ = "usages"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    resource_type_id = Column(
        BigIntegerType, ForeignKey("resource_types.id"), nullable=False
    )
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    usage = Column(Float, nullable=False, default=0)

    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_modified_by = Column(String(255), nullable=False)
    last_modified_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "resource_type_id",
            "subscription_id",
            name="uq_usages_resource_type_subscription",
        ),
    )
