"""
Database entities for plans and their effective-dated defaults and rates.
"""

from sqlalchemy import (
    Column,
    String,
    Text,
    Float,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class PlanEntity(Base):
    __tablename__ = "plans"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)

    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_modified_by = Column(String(255), nullable=True)
    last_modified_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class PlanQuotaDefaultEntity(Base):
    """
    Quota a new subscription to the plan starts with for one resource type.

    Effective-dated: the row with the latest effective_date not after now
    is the current default for its resource type.
    """

    __tablename__ = "plan_quota_defaults"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    plan_id = Column(
        BigIntegerType, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False
    )
    resource_type_id = Column(
        BigIntegerType, ForeignKey("resource_types.id"), nullable=False
    )
    quota_value = Column(Float, nullable=False)
    effective_date = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "plan_id",
            "resource_type_id",
            "effective_date",
            name="uq_plan_quota_defaults_plan_resource_date",
        ),
        Index("idx_plan_quota_defaults_plan_date", "plan_id", "effective_date"),
    )


class PlanRateEntity(Base):
    __tablename__ = "plan_rates"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    plan_id = Column(
        BigIntegerType, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False
    )
    rate = Column(Float, nullable=False)
    effective_date = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("plan_id", "effective_date", name="uq_plan_rates_plan_date"),
    )
