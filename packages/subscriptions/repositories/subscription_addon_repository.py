from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from common.repositories.base import BaseRepository, QueryOptions, DEFAULT_OPTIONS
from common.core.otel_axiom_exporter import trace_span
from packages.catalog.repositories.addon_repository import AddonRepository
from packages.subscriptions.models.database.subscription_addon import (
    SubscriptionAddonEntity,
)
from packages.subscriptions.models.domain.subscription_addon import (
    SubscriptionAddon,
    SubscriptionAddonCreateModel,
)


class SubscriptionAddonRepository(
    BaseRepository[SubscriptionAddonEntity, SubscriptionAddon]
):
    """Subscription add-ons are returned with their catalog add-on loaded."""

    def __init__(self, db_session=None, logger=None):
        super().__init__(SubscriptionAddonEntity, SubscriptionAddon, db_session, logger)
        self.addon_repo = AddonRepository(db_session, logger)

    async def _load(
        self,
        session: AsyncSession,
        entities: Sequence[SubscriptionAddonEntity],
    ) -> List[SubscriptionAddon]:
        if not entities:
            return []
        addon_ids = sorted({entity.addon_id for entity in entities})
        addons = {
            addon.id: addon
            for addon in await self.addon_repo.get_by_ids(
                addon_ids, QueryOptions(session=session)
            )
        }

        loaded = []
        for entity in entities:
            addon = addons[entity.addon_id]
            rate = next((r for r in addon.rates if r.id == entity.addon_rate_id), None)
            loaded.append(
                SubscriptionAddon(
                    id=entity.id,
                    subscription_id=entity.subscription_id,
                    addon=addon,
                    addon_rate=rate,
                    amount=entity.amount,
                    paid=entity.paid,
                )
            )
        return loaded

    async def _query(self, query, options: QueryOptions) -> List[SubscriptionAddon]:
        query = query.execution_options(populate_existing=True)
        async with self._get_session(options) as session:
            result = await session.execute(query)
            return await self._load(session, result.scalars().all())

    @trace_span
    async def get(
        self,
        id: int,
        options: QueryOptions = DEFAULT_OPTIONS,
        for_update: bool = False,
    ) -> Optional[SubscriptionAddon]:
        query = select(SubscriptionAddonEntity).where(SubscriptionAddonEntity.id == id)
        if for_update:
            query = query.with_for_update()
        loaded = await self._query(query, options)
        return loaded[0] if loaded else None

    @trace_span
    async def create_subscription_addon(
        self,
        create_model: SubscriptionAddonCreateModel,
        options: QueryOptions = DEFAULT_OPTIONS,
    ) -> SubscriptionAddon:
        entity = SubscriptionAddonEntity(**create_model.model_dump())
        async with self._get_session(options) as session:
            session.add(entity)
            await session.flush()
            loaded = await self._load(session, [entity])
            return loaded[0]

    @trace_span
    async def list_for_subscription(
        self, subscription_id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[SubscriptionAddon]:
        return await self._query(
            options.apply_paging(
                select(SubscriptionAddonEntity)
                .where(SubscriptionAddonEntity.subscription_id == subscription_id)
                .order_by(SubscriptionAddonEntity.id)
            ),
            options,
        )

    @trace_span
    async def list_for_addon(
        self, addon_id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[SubscriptionAddon]:
        return await self._query(
            options.apply_paging(
                select(SubscriptionAddonEntity)
                .where(SubscriptionAddonEntity.addon_id == addon_id)
                .order_by(SubscriptionAddonEntity.id)
            ),
            options,
        )

    @trace_span
    async def count_for_addon(
        self, addon_id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> int:
        async with self._get_session(options) as session:
            result = await session.execute(
                select(func.count(SubscriptionAddonEntity.id)).where(
                    SubscriptionAddonEntity.addon_id == addon_id
                )
            )
            return result.scalar_one()
