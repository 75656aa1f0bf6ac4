"""
Domain models for quota and usage ledger values.
"""

from typing import NamedTuple, Optional
from pydantic import BaseModel

from common.core.clock import UtcDateTime
from packages.catalog.models.domain.resource_type import ResourceType
from packages.subscriptions.models.domain.enums import UpdateOperation


class CurrentValue(NamedTuple):
    """
    A stored ledger value. found is False only when no row exists, in which
    case value is 0; a stored 0 comes back as (0.0, True).
    """

    value: float
    found: bool


class Quota(BaseModel):
    id: int
    subscription_id: int
    resource_type: ResourceType
    quota: float
    last_modified_at: Optional[UtcDateTime] = None


class Usage(BaseModel):
    id: int
    subscription_id: int
    resource_type: ResourceType
    usage: float
    last_modified_at: Optional[UtcDateTime] = None


class Overage(BaseModel):
    """A resource whose usage has reached or passed its quota."""

    resource_name: str
    quota: float
    usage: float


class LedgerAdjustment(BaseModel):
    """Administrative overwrite of a user's usage or quota, bypassing the audit trail."""

    username: str
    resource_name: str
    value: float
    operation: str = UpdateOperation.SET.value
