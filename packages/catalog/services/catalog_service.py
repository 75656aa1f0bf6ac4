"""
Service for resource types and plans.
"""

import logging
from typing import List, Optional

from common.core.config import settings
from common.core.exceptions import ConflictError, NotFoundError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from common.repositories.base import QueryOptions, DEFAULT_OPTIONS
from packages.catalog.effective_dates import duplicate_dates
from packages.catalog.models.domain.plan import Plan, PlanCreateModel
from packages.catalog.models.domain.resource_type import ResourceType, ResourceTypeRef
from packages.catalog.repositories.plan_repository import PlanRepository
from packages.catalog.repositories.resource_type_repository import (
    ResourceTypeRepository,
)


class CatalogService:
    def __init__(
        self,
        system_username: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or get_logger(__name__)
        self.system_username = system_username or settings.system_username
        self.resource_type_repo = ResourceTypeRepository(logger=self.logger)
        self.plan_repo = PlanRepository(logger=self.logger)

    @trace_span
    async def list_resource_types(self) -> List[ResourceType]:
        return await self.resource_type_repo.list_resource_types()

    @trace_span
    async def resolve_resource_type(self, ref: ResourceTypeRef) -> ResourceType:
        """Find a resource type by id, or by name (and unit when given)."""
        if ref.id is not None:
            resource_type = await self.resource_type_repo.get(ref.id)
        elif ref.name and ref.unit:
            resource_type = await self.resource_type_repo.get_by_name_and_unit(
                ref.name, ref.unit
            )
        elif ref.name:
            resource_type = await self.resource_type_repo.get_by_name(ref.name)
        else:
            raise ValidationError("a resource type id or name is required")

        if resource_type is None:
            raise NotFoundError(
                f"resource type {ref.id if ref.id is not None else ref.name!r} not found"
            )
        return resource_type

    @trace_span
    async def list_plans(self, options: QueryOptions = DEFAULT_OPTIONS) -> List[Plan]:
        return await self.plan_repo.list_plans(options)

    @trace_span
    async def get_plan(self, plan_id: int) -> Plan:
        plan = await self.plan_repo.get(plan_id)
        if plan is None:
            raise NotFoundError(f"plan {plan_id} not found")
        return plan

    @trace_span
    async def get_plan_by_name(self, name: str) -> Optional[Plan]:
        return await self.plan_repo.get_by_name(name)

    @trace_span
    async def add_plan(self, create_model: PlanCreateModel) -> Plan:
        """
        Create a plan with its quota defaults and rates.

        At most one default per (resource type, effective date) and one rate
        per effective date.
        """
        name = create_model.name.strip()
        if not name:
            raise ValidationError("plan name is required")
        if any(d.quota_value < 0 for d in create_model.quota_defaults):
            raise ValidationError("quota default values must not be negative")
        if any(r.rate < 0 for r in create_model.rates):
            raise ValidationError("plan rates must not be negative")
        if duplicate_dates(create_model.quota_defaults, lambda d: d.resource_name):
            raise ValidationError(
                "duplicate quota default for the same resource and effective date"
            )
        if duplicate_dates(create_model.rates):
            raise ValidationError("duplicate plan rate for the same effective date")

        async with transaction():
            if await self.plan_repo.get_by_name(name) is not None:
                raise ConflictError(f"plan '{name}' already exists")

            quota_defaults = []
            for default in create_model.quota_defaults:
                resource_type = await self.resolve_resource_type(
                    ResourceTypeRef(name=default.resource_name)
                )
                quota_defaults.append(
                    (resource_type.id, default.quota_value, default.effective_date)
                )

            plan = await self.plan_repo.create_plan(
                name=name,
                description=create_model.description,
                quota_defaults=quota_defaults,
                rates=[(r.rate, r.effective_date) for r in create_model.rates],
                created_by=self.system_username,
            )

        self.logger.info(
            f"Created plan {plan.name}",
            extra={
                "plan_id": plan.id,
                "quota_defaults": len(plan.quota_defaults),
                "rates": len(plan.rates),
            },
        )
        return plan
