"""Database models for the catalog."""

from packages.catalog.models.database.resource_type import ResourceTypeEntity
from packages.catalog.models.database.plan import (
    PlanEntity,
    PlanQuotaDefaultEntity,
    PlanRateEntity,
)
from packages.catalog.models.database.addon import AddonEntity, AddonRateEntity

__all__ = [
    "ResourceTypeEntity",
    "PlanEntity",
    "PlanQuotaDefaultEntity",
    "PlanRateEntity",
    "AddonEntity",
    "AddonRateEntity",
]
