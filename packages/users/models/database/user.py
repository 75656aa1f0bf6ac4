from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class UserEntity(Base):
    __tablename__ = "users"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
