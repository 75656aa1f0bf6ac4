"""
Session tracking for the current task.

The active transaction's session lives in a ContextVar so that repositories
called anywhere beneath ``transaction()`` join it instead of opening their
own connection. Each asyncio task gets its own copy of the context, so
concurrent requests never share a session.

Usage:
    async with transaction():
        await quota_repo.upsert_quota(...)   # joins the transaction
        await usage_repo.upsert_usage(...)   # same session

    @readonly
    async def get_user_overages(username: str):
        ...  # every get_session() below uses the read session
"""

from contextvars import ContextVar, Token
from functools import wraps
from typing import Optional, Callable, TypeVar, ParamSpec

from sqlalchemy.ext.asyncio import AsyncSession

_write_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_write_session", default=None
)

_read_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_read_session", default=None
)

# Forces all operations in this context to use readonly
_force_readonly: ContextVar[bool] = ContextVar("db_force_readonly", default=False)


def is_readonly_forced() -> bool:
    """Check if current context is forced to readonly."""
    return _force_readonly.get()


def get_current_session(readonly: bool = False) -> Optional[AsyncSession]:
    """
    Get the session of the enclosing transaction, if any.

    A readonly caller inside a write transaction gets the write session, so
    reads observe the transaction's own uncommitted writes.
    """
    if readonly or is_readonly_forced():
        return _read_session.get() or _write_session.get()
    return _write_session.get()


def set_current_session(session: AsyncSession, readonly: bool = False) -> Token:
    if readonly:
        return _read_session.set(session)
    return _write_session.set(session)


def reset_current_session(token: Token, readonly: bool = False) -> None:
    if readonly:
        _read_session.reset(token)
    else:
        _write_session.reset(token)


def in_transaction(readonly: bool = False) -> bool:
    """Check if we're currently inside a transaction of the given kind."""
    if readonly:
        return _read_session.get() is not None
    return _write_session.get() is not None


P = ParamSpec("P")
T = TypeVar("T")


def readonly(func: Callable[P, T]) -> Callable[P, T]:
    """
    Force every DB operation in this call chain onto the readonly session.
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        token = _force_readonly.set(True)
        try:
            return await func(*args, **kwargs)
        finally:
            _force_readonly.reset(token)

    return wrapper


def transactional(func: Callable[P, T]) -> Callable[P, T]:
    """
    Run the decorated coroutine inside ``transaction()``.

    Every repository call made by the function shares one session and the
    work commits or rolls back as a unit. Nested use joins the outer
    transaction.

    Usage:
        @transactional
        async def add_subscription_addon(self, subscription_id, addon_id):
            addon = await self.addon_repo.get(addon_id)
            await self.subscription_addon_repo.create(...)
            await self.quota_repo.upsert_quota(...)
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        from common.db.scoped import transaction as tx  # noqa: PLC0415

        async with tx():
            return await func(*args, **kwargs)

    return wrapper
