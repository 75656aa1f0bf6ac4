"""
Database entity for metered resource types.
"""

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class ResourceTypeEntity(Base):
    """A metered resource such as compute hours or stored bytes. Reference data."""

    __tablename__ = "resource_types"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    unit = Column(String(100), nullable=False)
    consumable = Column(Boolean, nullable=False, server_default="1", default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
