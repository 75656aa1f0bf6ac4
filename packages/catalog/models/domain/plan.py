"""
Domain models for plans.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from common.core.clock import UtcDateTime
from packages.catalog.effective_dates import current_of, current_per_key
from packages.catalog.models.domain.resource_type import ResourceType


class PlanQuotaDefault(BaseModel):
    id: Optional[int] = None
    resource_type: ResourceType
    quota_value: float
    effective_date: UtcDateTime


class PlanRate(BaseModel):
    id: Optional[int] = None
    rate: float
    effective_date: UtcDateTime


class Plan(BaseModel):
    """
    A subscription plan.

    quota_defaults is ordered by effective date then resource name, rates by
    effective date. Both keep their full history; use the current_* helpers
    to get what applies at a given moment.
    """

    id: int
    name: str
    description: Optional[str] = None
    quota_defaults: List[PlanQuotaDefault] = []
    rates: List[PlanRate] = []

    def current_rate(self, now: datetime) -> Optional[PlanRate]:
        return current_of(self.rates, now)

    def current_quota_defaults(self, now: datetime) -> List[PlanQuotaDefault]:
        """The effective default for each resource type, ordered by resource name."""
        current = current_per_key(
            self.quota_defaults, lambda d: d.resource_type.id, now
        )
        return sorted(current.values(), key=lambda d: d.resource_type.name)


class PlanQuotaDefaultCreateModel(BaseModel):
    resource_name: str
    quota_value: float
    effective_date: UtcDateTime


class PlanRateCreateModel(BaseModel):
    rate: float
    effective_date: UtcDateTime


class PlanCreateModel(BaseModel):
    name: str
    description: Optional[str] = None
    quota_defaults: List[PlanQuotaDefaultCreateModel] = []
    rates: List[PlanRateCreateModel] = []
