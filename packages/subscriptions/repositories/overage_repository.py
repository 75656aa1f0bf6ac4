from typing import List

from sqlalchemy import and_, select

from common.repositories.base import BaseRepository, QueryOptions, DEFAULT_OPTIONS
from common.core.otel_axiom_exporter import trace_span
from packages.catalog.models.database.resource_type import ResourceTypeEntity
from packages.subscriptions.models.database.ledger import QuotaEntity, UsageEntity
from packages.subscriptions.models.domain.ledger import Overage


class OverageRepository(BaseRepository[QuotaEntity, Overage]):
    def __init__(self, db_session=None, logger=None):
        super().__init__(QuotaEntity, Overage, db_session, logger)

    @trace_span
    async def list_overages(
        self, subscription_id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[Overage]:
        """
        Resource types where usage >= quota. Inner join: a resource type with
        a quota but no usage row yet is never reported.
        """
        query = (
            select(ResourceTypeEntity.name, QuotaEntity.quota, UsageEntity.usage)
            .select_from(QuotaEntity)
            .join(
                UsageEntity,
                and_(
                    UsageEntity.subscription_id == QuotaEntity.subscription_id,
                    UsageEntity.resource_type_id == QuotaEntity.resource_type_id,
                ),
            )
            .join(
                ResourceTypeEntity,
                QuotaEntity.resource_type_id == ResourceTypeEntity.id,
            )
            .where(
                QuotaEntity.subscription_id == subscription_id,
                UsageEntity.usage >= QuotaEntity.quota,
            )
            .order_by(ResourceTypeEntity.name)
        )
        async with self._get_session(options) as session:
            result = await session.execute(query)
            return [
                Overage(resource_name=name, quota=quota, usage=usage)
                for name, quota, usage in result.all()
            ]
