"""
Domain models for update events.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from common.core.clock import UtcDateTime
from packages.catalog.models.domain.resource_type import ResourceType, ResourceTypeRef
from packages.subscriptions.models.domain.enums import UpdateOperation, ValueType


class UpdateEventRequest(BaseModel):
    """
    A SET/ADD request against a user's usage or quota. Fields are loosely
    typed here and checked by UpdateService so rejections carry our own
    ValidationError.
    """

    username: str
    resource_type: ResourceTypeRef
    operation: str
    value: float
    effective_date: Optional[datetime] = None
    value_type: str = ValueType.USAGES.value


class UpdateEvent(BaseModel):
    id: int
    user_id: int
    username: str
    resource_type: ResourceType
    operation: UpdateOperation
    value_type: ValueType
    value: float
    effective_date: UtcDateTime
    created_by: str
    created_at: Optional[UtcDateTime] = None


class UpdateCreateModel(BaseModel):
    user_id: int
    resource_type_id: int
    operation: UpdateOperation
    value_type: ValueType
    value: float
    effective_date: datetime
    created_by: str
