from typing import Optional
from sqlalchemy import select

from common.repositories.base import BaseRepository, QueryOptions, DEFAULT_OPTIONS
from common.core.otel_axiom_exporter import trace_span
from packages.users.models.database.user import UserEntity
from packages.users.models.domain.user import User


class UserRepository(BaseRepository[UserEntity, User]):
    def __init__(self, db_session=None, logger=None):
        super().__init__(UserEntity, User, db_session, logger)

    @trace_span
    async def get_by_username(
        self,
        username: str,
        options: QueryOptions = DEFAULT_OPTIONS,
        for_update: bool = False,
    ) -> Optional[User]:
        """Get user by username. for_update locks the row until the transaction ends."""
        query = select(UserEntity).where(UserEntity.username == username)
        if for_update:
            query = query.with_for_update()
        async with self._get_session(options) as session:
            result = await session.execute(query)
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def ensure_user(
        self, username: str, options: QueryOptions = DEFAULT_OPTIONS
    ) -> User:
        """Return the user, inserting it first if it does not exist yet."""
        async with self._get_session(options) as session:
            stmt = self._dialect_insert(session, UserEntity).values(username=username)
            await session.execute(stmt.on_conflict_do_nothing(index_elements=["username"]))
        user = await self.get_by_username(username, options)
        self.logger.debug(f"Ensured user {username}", extra={"user_id": user.id})
        return user
