"""
Repositories for the quota and usage ledgers.

Both ledgers store a single current value per (resource type, subscription).
Reads report whether a row exists; writes are last-write-wins upserts on
the uniqueness key. Read-modify-write callers must run inside
``transaction()`` and read with ``for_update=True``. That first locks the
parent subscription row, which exists even when the ledger row does not,
so writers to a pair serialize before its first insert as well.
"""

from typing import List

from sqlalchemy import select

from common.core.clock import utcnow
from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import (
    BaseRepository,
    QueryOptions,
    DEFAULT_OPTIONS,
    EntityType,
    DomainModelType,
)
from packages.catalog.models.database.resource_type import ResourceTypeEntity
from packages.catalog.models.domain.resource_type import ResourceType
from packages.subscriptions.models.database.ledger import QuotaEntity, UsageEntity
from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.domain.ledger import CurrentValue, Quota, Usage

LEDGER_KEY = ["resource_type_id", "subscription_id"]


def subscription_lock_query(subscription_id: int):
    return (
        select(SubscriptionEntity.id)
        .where(SubscriptionEntity.id == subscription_id)
        .with_for_update()
    )


class LedgerRepository(BaseRepository[EntityType, DomainModelType]):
    value_column: str

    async def _get_current(
        self,
        resource_type_id: int,
        subscription_id: int,
        options: QueryOptions,
        for_update: bool,
    ) -> CurrentValue:
        column = getattr(self.entity_class, self.value_column)
        query = select(column).where(
            self.entity_class.resource_type_id == resource_type_id,
            self.entity_class.subscription_id == subscription_id,
        )
        if for_update:
            query = query.with_for_update()
        async with self._get_session(options) as session:
            if for_update:
                await session.execute(subscription_lock_query(subscription_id))
            result = await session.execute(query)
            value = result.scalar_one_or_none()
        if value is None:
            return CurrentValue(0.0, False)
        return CurrentValue(float(value), True)

    async def _upsert_value(
        self,
        value: float,
        resource_type_id: int,
        subscription_id: int,
        modified_by: str,
        options: QueryOptions,
    ) -> None:
        now = utcnow()
        await self._upsert(
            values={
                self.value_column: value,
                "resource_type_id": resource_type_id,
                "subscription_id": subscription_id,
                "created_by": modified_by,
                "last_modified_by": modified_by,
                "created_at": now,
                "last_modified_at": now,
            },
            conflict_columns=LEDGER_KEY,
            update_values={
                self.value_column: value,
                "last_modified_by": modified_by,
                "last_modified_at": now,
            },
            options=options,
        )
        self.logger.debug(
            f"Upserted {self.entity_class.__tablename__} value",
            extra={
                "resource_type_id": resource_type_id,
                "subscription_id": subscription_id,
                "value": value,
            },
        )

    async def _list_for_subscription(
        self, subscription_id: int, options: QueryOptions
    ) -> List[DomainModelType]:
        query = options.apply_paging(
            select(self.entity_class, ResourceTypeEntity)
            .join(
                ResourceTypeEntity,
                self.entity_class.resource_type_id == ResourceTypeEntity.id,
            )
            .where(self.entity_class.subscription_id == subscription_id)
            .order_by(ResourceTypeEntity.name)
            .execution_options(populate_existing=True)
        )
        async with self._get_session(options) as session:
            result = await session.execute(query)
            return [
                self.domain_class(
                    id=entity.id,
                    subscription_id=entity.subscription_id,
                    resource_type=ResourceType.model_validate(resource_type),
                    last_modified_at=entity.last_modified_at,
                    **{self.value_column: getattr(entity, self.value_column)},
                )
                for entity, resource_type in result.all()
            ]


class QuotaRepository(LedgerRepository[QuotaEntity, Quota]):
    value_column = "quota"

    def __init__(self, db_session=None, logger=None):
        super().__init__(QuotaEntity, Quota, db_session, logger)

    @trace_span
    async def get_current_quota(
        self,
        resource_type_id: int,
        subscription_id: int,
        options: QueryOptions = DEFAULT_OPTIONS,
        for_update: bool = False,
    ) -> CurrentValue:
        return await self._get_current(
            resource_type_id, subscription_id, options, for_update
        )

    @trace_span
    async def upsert_quota(
        self,
        value: float,
        resource_type_id: int,
        subscription_id: int,
        modified_by: str,
        options: QueryOptions = DEFAULT_OPTIONS,
    ) -> None:
        await self._upsert_value(
            value, resource_type_id, subscription_id, modified_by, options
        )

    @trace_span
    async def list_quotas(
        self, subscription_id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[Quota]:
        return await self._list_for_subscription(subscription_id, options)


class UsageRepository(LedgerRepository[UsageEntity, Usage]):
    value_column = "usage"

    def __init__(self, db_session=None, logger=None):
        super().__init__(UsageEntity, Usage, db_session, logger)

    @trace_span
    async def get_current_usage(
        self,
        resource_type_id: int,
        subscription_id: int,
        options: QueryOptions = DEFAULT_OPTIONS,
        for_update: bool = False,
    ) -> CurrentValue:
        return await self._get_current(
            resource_type_id, subscription_id, options, for_update
        )

    @trace_span
    async def upsert_usage(
        self,
        value: float,
        resource_type_id: int,
        subscription_id: int,
        modified_by: str,
        options: QueryOptions = DEFAULT_OPTIONS,
    ) -> None:
        await self._upsert_value(
            value, resource_type_id, subscription_id, modified_by, options
        )

    @trace_span
    async def list_usages(
        self, subscription_id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[Usage]:
        return await self._list_for_subscription(subscription_id, options)
