from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from common.repositories.base import BaseRepository, QueryOptions, DEFAULT_OPTIONS
from common.core.otel_axiom_exporter import trace_span
from packages.catalog.models.database.plan import (
    PlanEntity,
    PlanQuotaDefaultEntity,
    PlanRateEntity,
)
from packages.catalog.models.database.resource_type import ResourceTypeEntity
from packages.catalog.models.domain.plan import Plan, PlanQuotaDefault, PlanRate
from packages.catalog.models.domain.resource_type import ResourceType

# (resource_type_id, quota_value, effective_date)
QuotaDefaultRow = Tuple[int, float, datetime]
# (rate, effective_date)
RateRow = Tuple[float, datetime]


class PlanRepository(BaseRepository[PlanEntity, Plan]):
    """Plans are always returned with their quota defaults and rates loaded."""

    def __init__(self, db_session=None, logger=None):
        super().__init__(PlanEntity, Plan, db_session, logger)

    async def _load_plans(
        self, session: AsyncSession, entities: Sequence[PlanEntity]
    ) -> List[Plan]:
        if not entities:
            return []
        plan_ids = [entity.id for entity in entities]

        defaults_result = await session.execute(
            select(PlanQuotaDefaultEntity, ResourceTypeEntity)
            .join(
                ResourceTypeEntity,
                PlanQuotaDefaultEntity.resource_type_id == ResourceTypeEntity.id,
            )
            .where(PlanQuotaDefaultEntity.plan_id.in_(plan_ids))
            .order_by(PlanQuotaDefaultEntity.effective_date, ResourceTypeEntity.name)
        )
        defaults: Dict[int, List[PlanQuotaDefault]] = defaultdict(list)
        for default, resource_type in defaults_result.all():
            defaults[default.plan_id].append(
                PlanQuotaDefault(
                    id=default.id,
                    resource_type=ResourceType.model_validate(resource_type),
                    quota_value=default.quota_value,
                    effective_date=default.effective_date,
                )
            )

        rates_result = await session.execute(
            select(PlanRateEntity)
            .where(PlanRateEntity.plan_id.in_(plan_ids))
            .order_by(PlanRateEntity.effective_date)
        )
        rates: Dict[int, List[PlanRate]] = defaultdict(list)
        for rate in rates_result.scalars().all():
            rates[rate.plan_id].append(
                PlanRate(id=rate.id, rate=rate.rate, effective_date=rate.effective_date)
            )

        return [
            Plan(
                id=entity.id,
                name=entity.name,
                description=entity.description,
                quota_defaults=defaults[entity.id],
                rates=rates[entity.id],
            )
            for entity in entities
        ]

    @trace_span
    async def get(
        self, id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> Optional[Plan]:
        async with self._get_session(options) as session:
            entity = await session.get(PlanEntity, id)
            plans = await self._load_plans(session, [entity] if entity else [])
            return plans[0] if plans else None

    @trace_span
    async def get_by_name(
        self, name: str, options: QueryOptions = DEFAULT_OPTIONS
    ) -> Optional[Plan]:
        async with self._get_session(options) as session:
            result = await session.execute(
                select(PlanEntity).where(PlanEntity.name == name)
            )
            entity = result.scalar_one_or_none()
            plans = await self._load_plans(session, [entity] if entity else [])
            return plans[0] if plans else None

    @trace_span
    async def list_plans(self, options: QueryOptions = DEFAULT_OPTIONS) -> List[Plan]:
        query = options.apply_paging(select(PlanEntity).order_by(PlanEntity.name))
        async with self._get_session(options) as session:
            result = await session.execute(query)
            return await self._load_plans(session, result.scalars().all())

    @trace_span
    async def create_plan(
        self,
        name: str,
        description: Optional[str],
        quota_defaults: List[QuotaDefaultRow],
        rates: List[RateRow],
        created_by: str,
        options: QueryOptions = DEFAULT_OPTIONS,
    ) -> Plan:
        async with self._get_session(options) as session:
            entity = PlanEntity(
                name=name,
                description=description,
                created_by=created_by,
                last_modified_by=created_by,
            )
            session.add(entity)
            await session.flush()

            session.add_all(
                PlanQuotaDefaultEntity(
                    plan_id=entity.id,
                    resource_type_id=resource_type_id,
                    quota_value=value,
                    effective_date=effective_date,
                )
                for resource_type_id, value, effective_date in quota_defaults
            )
            session.add_all(
                PlanRateEntity(plan_id=entity.id, rate=rate, effective_date=date)
                for rate, date in rates
            )
            await session.flush()

            plans = await self._load_plans(session, [entity])
            return plans[0]
