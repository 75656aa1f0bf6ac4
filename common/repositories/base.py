import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import (
    Any,
    AsyncGenerator,
    Dict,
    Generic,
    List,
    Optional,
    Sequence,
    Type,
    TypeVar,
)

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from common.core.exceptions import StorageError
from common.core.otel_axiom_exporter import get_logger, trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")
CreateModelType = TypeVar("CreateModelType", bound=BaseModel)
UpdateModelType = TypeVar("UpdateModelType", bound=BaseModel)


@dataclass(frozen=True)
class QueryOptions:
    """
    Per-call query options.

    session: run on this session instead of the ambient one
    limit/offset: paging for list queries, None means unbounded
    """

    session: Optional[AsyncSession] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    def apply_paging(self, query):
        if self.offset:
            query = query.offset(self.offset)
        if self.limit is not None:
            query = query.limit(self.limit)
        return query


DEFAULT_OPTIONS = QueryOptions()


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Typed repository over one entity.

    Sessions come from, in order: ``QueryOptions.session`` for the call,
    the session passed to the constructor, or the lazy ``get_session()``
    which joins the enclosing ``transaction()`` if one is open.
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
        db_session: Optional[AsyncSession] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class
        self._explicit_session = db_session
        self.logger = logger or get_logger(self.__class__.__module__)

    @asynccontextmanager
    async def _get_session(
        self, options: QueryOptions = DEFAULT_OPTIONS
    ) -> AsyncGenerator[AsyncSession, None]:
        if options.session is not None:
            yield options.session
        elif self._explicit_session is not None:
            yield self._explicit_session
        else:
            async with get_session() as session:
                yield session

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        """Convert database entity to domain model."""
        return self.domain_class.model_validate(entity)

    def _entities_to_domain(
        self, entities: Sequence[EntityType]
    ) -> List[DomainModelType]:
        return [self._entity_to_domain(entity) for entity in entities]

    @staticmethod
    def _dialect_insert(session: AsyncSession, entity_class):
        """Return the dialect-specific INSERT construct supporting ON CONFLICT."""
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(entity_class)
        if dialect == "sqlite":
            return sqlite.insert(entity_class)
        raise StorageError(f"Upsert is not supported on dialect '{dialect}'")

    async def _upsert(
        self,
        values: Dict[str, Any],
        conflict_columns: List[str],
        update_values: Dict[str, Any],
        options: QueryOptions = DEFAULT_OPTIONS,
    ) -> None:
        """INSERT ... ON CONFLICT (conflict_columns) DO UPDATE SET update_values."""
        async with self._get_session(options) as session:
            stmt = self._dialect_insert(session, self.entity_class).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=conflict_columns, set_=update_values
            )
            await session.execute(stmt)

    @trace_span
    async def get(
        self, id: int, options: QueryOptions = DEFAULT_OPTIONS
    ) -> Optional[DomainModelType]:
        async with self._get_session(options) as session:
            result = await session.execute(
                select(self.entity_class).where(self.entity_class.id == id)
            )
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def get_multi(
        self, options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[DomainModelType]:
        query = options.apply_paging(
            select(self.entity_class).order_by(self.entity_class.id)
        )
        async with self._get_session(options) as session:
            result = await session.execute(query)
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def create(
        self, create_model: CreateModelType, options: QueryOptions = DEFAULT_OPTIONS
    ) -> DomainModelType:
        """Create a new entity from a typed create model."""
        db_obj = self.entity_class(**create_model.model_dump(exclude_none=True))
        async with self._get_session(options) as session:
            session.add(db_obj)
            await session.flush()
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def update(
        self,
        id: int,
        update_model: UpdateModelType,
        options: QueryOptions = DEFAULT_OPTIONS,
    ) -> bool:
        """Apply the fields set on update_model. Returns False if no row matched."""
        data = update_model.model_dump(exclude_unset=True)
        async with self._get_session(options) as session:
            if not data:
                exists = await session.execute(
                    select(self.entity_class.id).where(self.entity_class.id == id)
                )
                return exists.scalar_one_or_none() is not None
            result = await session.execute(
                update(self.entity_class).where(self.entity_class.id == id).values(data)
            )
            return result.rowcount > 0

    @trace_span
    async def delete(self, id: int, options: QueryOptions = DEFAULT_OPTIONS) -> bool:
        async with self._get_session(options) as session:
            result = await session.execute(
                delete(self.entity_class).where(self.entity_class.id == id)
            )
            return result.rowcount > 0
