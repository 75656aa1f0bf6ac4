"""
Operation-scoped database sessions.

Usage:
    # Single operation - acquires, commits and releases immediately
    async with get_session() as session:
        result = await session.get(QuotaEntity, id)

    # Read-modify-write - every step shares one session and commits together
    async with transaction():
        current = await quota_repo.get_current_quota(rt_id, sub_id, for_update=True)
        await quota_repo.upsert_quota(current.value + amount, rt_id, sub_id)

Nothing is committed until the outermost ``transaction()`` exits normally.
Any exception, including cancellation from ``asyncio.timeout`` or
``asyncio.wait_for``, rolls the whole unit back. Store failures surface as
``StorageError`` with the original error chained.

See also:
    - common/db/context.py: ContextVar tracking, @readonly, @transactional
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.exceptions import StorageError
from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly
from common.db.context import (
    get_current_session,
    set_current_session,
    reset_current_session,
    is_readonly_forced,
)

logger = get_logger(__name__)


async def _rollback(session: AsyncSession, error: BaseException, scope: str) -> None:
    if isinstance(error, asyncio.CancelledError):
        logger.warning(f"{scope} cancelled, rolling back")
    else:
        logger.error(f"{scope} rollback due to: {error!r}")
    await session.rollback()


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    All DB operations inside share one session/connection. Commits on
    success (unless readonly), rolls back on any exception. When called
    inside another ``transaction()`` it joins the outer one; only the
    outermost block commits.

    Raises:
        StorageError: the store rejected a statement or the commit
        Exception: any other error is re-raised unchanged after rollback
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)
    if existing is not None:
        logger.debug("Joining enclosing transaction")
        yield existing
        return

    session_factory = (
        AsyncSessionLocalReadonly if effective_readonly else AsyncSessionLocal
    )

    start = time.perf_counter()
    async with session_factory() as session:
        acquire_time = time.perf_counter() - start
        logger.debug(
            f"Transaction session acquire: {acquire_time * 1000:.2f}ms, readonly={effective_readonly}"
        )

        token = set_current_session(session, readonly=effective_readonly)
        try:
            yield session
            if not effective_readonly:
                commit_start = time.perf_counter()
                await session.commit()
                commit_time = time.perf_counter() - commit_start
                logger.debug(f"Transaction commit: {commit_time * 1000:.2f}ms")
        except (Exception, asyncio.CancelledError) as e:
            await _rollback(session, e, "Transaction")
            if isinstance(e, SQLAlchemyError):
                raise StorageError(f"Transaction failed: {e}") from e
            raise
        finally:
            reset_current_session(token, readonly=effective_readonly)


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a session for a single DB operation.

    Reuses the enclosing transaction's session if there is one (without
    committing, the transaction handles that). Otherwise acquires a new
    session, commits and releases it immediately.
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)

    if existing is not None:
        yield existing
        return

    session_factory = (
        AsyncSessionLocalReadonly if effective_readonly else AsyncSessionLocal
    )

    start = time.perf_counter()
    async with session_factory() as session:
        acquire_time = time.perf_counter() - start
        logger.debug(
            f"Operation session acquire: {acquire_time * 1000:.2f}ms, readonly={effective_readonly}"
        )

        try:
            yield session
            if not effective_readonly:
                await session.commit()
        except (Exception, asyncio.CancelledError) as e:
            await _rollback(session, e, "Operation")
            if isinstance(e, SQLAlchemyError):
                raise StorageError(f"Operation failed: {e}") from e
            raise
