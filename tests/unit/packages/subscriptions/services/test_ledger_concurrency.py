"""
Concurrency tests for the usage ledger.

These run against a file-backed SQLite database where every transaction
starts with BEGIN IMMEDIATE, so concurrent writers serialize on the
database lock the way they serialize on the row lock in PostgreSQL. A delay
injected between the read and the write makes lost updates observable if
the read-modify-write were not transactional.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.db.base import Base
from packages.catalog.models.database.resource_type import ResourceTypeEntity
from packages.catalog.models.database.plan import PlanEntity
from packages.subscriptions.models.database.ledger import UsageEntity
from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.services.usage_service import UsageService
from packages.users.models.database.user import UserEntity

WRITERS = 10
INCREMENT = 2.5


@pytest_asyncio.fixture(scope="function")
async def file_engine(tmp_path):
    """A file-backed SQLite engine whose transactions take the write lock up front."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # let the begin hook below emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(file_engine, monkeypatch):
    """Route transaction() and get_session() to the file-backed database."""
    factory = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", factory)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocalReadonly", factory)
    return factory


@pytest_asyncio.fixture(scope="function")
async def ledger_key(file_session_factory):
    """Seed one user, plan and subscription; return (resource_type_id, subscription_id)."""
    now = datetime.now(timezone.utc)
    async with file_session_factory() as session:
        resource_type = ResourceTypeEntity(name="cpu.hours", unit="cpu hours")
        user = UserEntity(username="alice")
        plan = PlanEntity(name="Basic", created_by="system", last_modified_by="system")
        session.add_all([resource_type, user, plan])
        await session.flush()
        subscription = SubscriptionEntity(
            user_id=user.id,
            plan_id=plan.id,
            effective_start_date=now - timedelta(days=1),
            effective_end_date=now + timedelta(days=364),
            created_by="system",
            last_modified_by="system",
        )
        session.add(subscription)
        await session.commit()
        return resource_type.id, subscription.id


async def _stored_usage(session_factory, resource_type_id, subscription_id):
    async with session_factory() as session:
        result = await session.execute(
            select(UsageEntity.usage).where(
                UsageEntity.resource_type_id == resource_type_id,
                UsageEntity.subscription_id == subscription_id,
            )
        )
        return result.scalar_one_or_none()


def _slow_reads(service: UsageService, delay: float):
    """Sleep after every usage read, inside the caller's transaction."""
    read = service.usage_repo.get_current_usage

    async def slow_read(*args, **kwargs):
        current = await read(*args, **kwargs)
        await asyncio.sleep(delay)
        return current

    service.usage_repo.get_current_usage = slow_read


def _slow_writes(service: UsageService, delay: float):
    """Sleep after every usage write, before the transaction commits."""
    write = service.usage_repo.upsert_usage

    async def slow_write(*args, **kwargs):
        await write(*args, **kwargs)
        await asyncio.sleep(delay)

    service.usage_repo.upsert_usage = slow_write


@pytest.mark.asyncio
class TestConcurrentUpdates:
    """Tests that concurrent read-modify-writes do not lose updates."""

    async def test_concurrent_adds_sum_exactly(self, file_session_factory, ledger_key):
        """Test that N concurrent ADD(v) calls leave exactly N * v."""
        resource_type_id, subscription_id = ledger_key
        service = UsageService()
        _slow_reads(service, 0.02)

        results = await asyncio.gather(
            *(
                service.apply_update("ADD", resource_type_id, subscription_id, INCREMENT)
                for _ in range(WRITERS)
            )
        )

        assert sorted(results) == [INCREMENT * (i + 1) for i in range(WRITERS)]
        stored = await _stored_usage(file_session_factory, resource_type_id, subscription_id)
        assert stored == WRITERS * INCREMENT

    async def test_timeout_leaves_usage_unchanged(self, file_session_factory, ledger_key):
        """Test that a deadline expiring after the write but before commit rolls it back."""
        resource_type_id, subscription_id = ledger_key
        service = UsageService()
        await service.apply_update("SET", resource_type_id, subscription_id, 100.0)
        _slow_writes(service, 5)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(
                service.apply_update("ADD", resource_type_id, subscription_id, 50.0),
                timeout=0.2,
            )

        stored = await _stored_usage(file_session_factory, resource_type_id, subscription_id)
        assert stored == 100.0

        # the lock was released, so later writers proceed normally
        fresh = UsageService()
        assert await fresh.apply_update("ADD", resource_type_id, subscription_id, 1.0) == 101.0
