"""
Domain models for the add-on catalog.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from common.core.clock import UtcDateTime
from packages.catalog.effective_dates import current_of
from packages.catalog.models.domain.resource_type import ResourceType, ResourceTypeRef


class AddonRate(BaseModel):
    id: Optional[int] = None
    rate: float
    effective_date: UtcDateTime


class Addon(BaseModel):
    """Catalog add-on with its rate history ordered by effective date."""

    id: int
    name: str
    description: str = ""
    resource_type: ResourceType
    default_amount: float
    default_paid: bool
    rates: List[AddonRate] = []

    def current_rate(self, now: datetime) -> Optional[AddonRate]:
        return current_of(self.rates, now)


class AddonRateModel(BaseModel):
    rate: float
    effective_date: UtcDateTime


class AddonCreateModel(BaseModel):
    name: str
    description: str = ""
    resource_type: ResourceTypeRef
    default_amount: float
    default_paid: bool = True
    rates: List[AddonRateModel] = []


class AddonUpdateModel(BaseModel):
    """
    Partial add-on update. Only fields explicitly set are changed; a
    supplied rates list replaces the stored rate history.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    resource_type: Optional[ResourceTypeRef] = None
    default_amount: Optional[float] = None
    default_paid: Optional[bool] = None
    rates: Optional[List[AddonRateModel]] = None
