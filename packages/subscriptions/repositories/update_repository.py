from typing import List, Optional

from sqlalchemy import select

from common.repositories.base import BaseRepository, QueryOptions, DEFAULT_OPTIONS
from common.core.otel_axiom_exporter import trace_span
from packages.catalog.models.database.resource_type import ResourceTypeEntity
from packages.catalog.models.domain.resource_type import ResourceType
from packages.subscriptions.models.database.update import UpdateEntity
from packages.subscriptions.models.domain.update import UpdateCreateModel, UpdateEvent
from packages.users.models.database.user import UserEntity


class UpdateRepository(BaseRepository[UpdateEntity, UpdateEvent]):
    """Append-only store of update events."""

    def __init__(self, db_session=None, logger=None):
        super().__init__(UpdateEntity, UpdateEvent, db_session, logger)

    def _event_query(self):
        return (
            select(UpdateEntity, UserEntity.username, ResourceTypeEntity)
            .join(UserEntity, UpdateEntity.user_id == UserEntity.id)
            .join(
                ResourceTypeEntity,
                UpdateEntity.resource_type_id == ResourceTypeEntity.id,
            )
        )

    @staticmethod
    def _to_event(update: UpdateEntity, username: str, resource_type) -> UpdateEvent:
        return UpdateEvent(
            id=update.id,
            user_id=update.user_id,
            username=username,
            resource_type=ResourceType.model_validate(resource_type),
            operation=update.operation,
            value_type=update.value_type,
            value=update.value,
            effective_date=update.effective_date,
            created_by=update.created_by,
            created_at=update.created_at,
        )

    @trace_span
    async def get(
        self, id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> Optional[UpdateEvent]:
        async with self._get_session(options) as session:
            result = await session.execute(
                self._event_query().where(UpdateEntity.id == id)
            )
            row = result.one_or_none()
            return self._to_event(*row) if row else None

    @trace_span
    async def record_update(
        self, create_model: UpdateCreateModel, options: QueryOptions = DEFAULT_OPTIONS
    ) -> UpdateEvent:
        entity = UpdateEntity(
            user_id=create_model.user_id,
            resource_type_id=create_model.resource_type_id,
            operation=create_model.operation.value,
            value_type=create_model.value_type.value,
            value=create_model.value,
            effective_date=create_model.effective_date,
            created_by=create_model.created_by,
        )
        async with self._get_session(options) as session:
            session.add(entity)
            await session.flush()
            await session.refresh(entity)
        return await self.get(entity.id, options)

    @trace_span
    async def list_for_username(
        self, username: str, options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[UpdateEvent]:
        """A user's update events, most recent first."""
        query = options.apply_paging(
            self._event_query()
            .where(UserEntity.username == username)
            .order_by(UpdateEntity.created_at.desc(), UpdateEntity.id.desc())
        )
        async with self._get_session(options) as session:
            result = await session.execute(query)
            return [self._to_event(*row) for row in result.all()]
