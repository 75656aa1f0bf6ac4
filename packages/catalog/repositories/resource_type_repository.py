from typing import List, Optional
from sqlalchemy import select

from common.repositories.base import BaseRepository, QueryOptions, DEFAULT_OPTIONS
from common.core.otel_axiom_exporter import trace_span
from packages.catalog.models.database.resource_type import ResourceTypeEntity
from packages.catalog.models.domain.resource_type import ResourceType


class ResourceTypeRepository(BaseRepository[ResourceTypeEntity, ResourceType]):
    def __init__(self, db_session=None, logger=None):
        super().__init__(ResourceTypeEntity, ResourceType, db_session, logger)

    @trace_span
    async def get_by_name(
        self, name: str, options: QueryOptions = DEFAULT_OPTIONS
    ) -> Optional[ResourceType]:
        async with self._get_session(options) as session:
            result = await session.execute(
                select(ResourceTypeEntity).where(ResourceTypeEntity.name == name)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def get_by_name_and_unit(
        self, name: str, unit: str, options: QueryOptions = DEFAULT_OPTIONS
    ) -> Optional[ResourceType]:
        async with self._get_session(options) as session:
            result = await session.execute(
                select(ResourceTypeEntity).where(
                    ResourceTypeEntity.name == name, ResourceTypeEntity.unit == unit
                )
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def list_resource_types(
        self, options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[ResourceType]:
        query = options.apply_paging(
            select(ResourceTypeEntity).order_by(ResourceTypeEntity.name)
        )
        async with self._get_session(options) as session:
            result = await session.execute(query)
            return self._entities_to_domain(result.scalars().all())
