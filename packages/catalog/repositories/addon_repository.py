from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from common.repositories.base import BaseRepository, QueryOptions, DEFAULT_OPTIONS
from common.core.otel_axiom_exporter import trace_span
from packages.catalog.models.database.addon import AddonEntity, AddonRateEntity
from packages.catalog.models.database.resource_type import ResourceTypeEntity
from packages.catalog.models.domain.addon import Addon, AddonRate, AddonRateModel
from packages.catalog.models.domain.resource_type import ResourceType


class AddonRepository(BaseRepository[AddonEntity, Addon]):
    """Add-ons are returned with their resource type and rate history."""

    def __init__(self, db_session=None, logger=None):
        super().__init__(AddonEntity, Addon, db_session, logger)

    def _addon_query(self):
        return (
            select(AddonEntity, ResourceTypeEntity)
            .join(
                ResourceTypeEntity,
                AddonEntity.resource_type_id == ResourceTypeEntity.id,
            )
            .execution_options(populate_existing=True)
        )

    async def _load_addons(self, session: AsyncSession, rows: Sequence) -> List[Addon]:
        if not rows:
            return []
        addon_ids = [addon.id for addon, _ in rows]

        rates_result = await session.execute(
            select(AddonRateEntity)
            .where(AddonRateEntity.addon_id.in_(addon_ids))
            .order_by(AddonRateEntity.effective_date)
            .execution_options(populate_existing=True)
        )
        rates: Dict[int, List[AddonRate]] = defaultdict(list)
        for rate in rates_result.scalars().all():
            rates[rate.addon_id].append(
                AddonRate(id=rate.id, rate=rate.rate, effective_date=rate.effective_date)
            )

        return [
            Addon(
                id=addon.id,
                name=addon.name,
                description=addon.description or "",
                resource_type=ResourceType.model_validate(resource_type),
                default_amount=addon.default_amount,
                default_paid=addon.default_paid,
                rates=rates[addon.id],
            )
            for addon, resource_type in rows
        ]

    @trace_span
    async def get(
        self, id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> Optional[Addon]:
        async with self._get_session(options) as session:
            result = await session.execute(
                self._addon_query().where(AddonEntity.id == id)
            )
            addons = await self._load_addons(session, result.all())
            return addons[0] if addons else None

    @trace_span
    async def get_by_ids(
        self, ids: List[int], options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[Addon]:
        if not ids:
            return []
        async with self._get_session(options) as session:
            result = await session.execute(
                self._addon_query().where(AddonEntity.id.in_(ids))
            )
            return await self._load_addons(session, result.all())

    @trace_span
    async def get_by_name(
        self, name: str, options: QueryOptions = DEFAULT_OPTIONS
    ) -> Optional[Addon]:
        async with self._get_session(options) as session:
            result = await session.execute(
                self._addon_query().where(AddonEntity.name == name)
            )
            addons = await self._load_addons(session, result.all())
            return addons[0] if addons else None

    @trace_span
    async def list_addons(self, options: QueryOptions = DEFAULT_OPTIONS) -> List[Addon]:
        query = options.apply_paging(self._addon_query().order_by(AddonEntity.name))
        async with self._get_session(options) as session:
            result = await session.execute(query)
            return await self._load_addons(session, result.all())

    @trace_span
    async def create_addon(
        self,
        values: Dict[str, Any],
        rates: List[AddonRateModel],
        options: QueryOptions = DEFAULT_OPTIONS,
    ) -> Addon:
        async with self._get_session(options) as session:
            entity = AddonEntity(**values)
            session.add(entity)
            await session.flush()
            session.add_all(
                AddonRateEntity(
                    addon_id=entity.id, rate=r.rate, effective_date=r.effective_date
                )
                for r in rates
            )
            await session.flush()
        return await self.get(entity.id, options)

    @trace_span
    async def update_fields(
        self, id: int, values: Dict[str, Any], options: QueryOptions = DEFAULT_OPTIONS
    ) -> bool:
        """Update add-on columns. Returns False when the add-on does not exist."""
        async with self._get_session(options) as session:
            if not values:
                return await session.get(AddonEntity, id) is not None
            result = await session.execute(
                update(AddonEntity).where(AddonEntity.id == id).values(**values)
            )
            return result.rowcount > 0

    @trace_span
    async def replace_rates(
        self,
        addon_id: int,
        rates: List[AddonRateModel],
        options: QueryOptions = DEFAULT_OPTIONS,
    ) -> None:
        """Make the stored rate history exactly `rates`, keyed by effective date."""
        async with self._get_session(options) as session:
            keep_dates = [r.effective_date for r in rates]
            await session.execute(
                delete(AddonRateEntity).where(
                    AddonRateEntity.addon_id == addon_id,
                    AddonRateEntity.effective_date.notin_(keep_dates),
                )
            )
            for r in rates:
                stmt = self._dialect_insert(session, AddonRateEntity).values(
                    addon_id=addon_id, rate=r.rate, effective_date=r.effective_date
                )
                await session.execute(
                    stmt.on_conflict_do_update(
                        index_elements=["addon_id", "effective_date"],
                        set_={"rate": r.rate},
                    )
                )

    @trace_span
    async def delete(self, id: int, options: QueryOptions = DEFAULT_OPTIONS) -> bool:
        async with self._get_session(options) as session:
            await session.execute(
                delete(AddonRateEntity).where(AddonRateEntity.addon_id == id)
            )
            result = await session.execute(delete(AddonEntity).where(AddonEntity.id == id))
            return result.rowcount > 0
