# Shared pytest configuration and fixtures for all test types
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from common.db.base import Base
from packages.catalog.models.database import (
    AddonEntity,
    AddonRateEntity,
    PlanEntity,
    PlanQuotaDefaultEntity,
    PlanRateEntity,
    ResourceTypeEntity,
)
from packages.subscriptions.models.database import (  # noqa: F401
    QuotaEntity,
    SubscriptionAddonEntity,
    SubscriptionEntity,
    UpdateEntity,
    UsageEntity,
)
from packages.users.models.database.user import UserEntity  # noqa: F401

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SEED_DATE = datetime(2020, 1, 1, tzinfo=timezone.utc)
FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

BASIC_CPU_QUOTA = 20000.0
BASIC_DATA_QUOTA = 5368709120.0


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


@pytest.fixture
def fixed_clock():
    """A clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest_asyncio.fixture(scope="function")
async def resource_types(test_db: AsyncSession):
    """Seed the cpu.hours and data.size resource types."""
    cpu = ResourceTypeEntity(name="cpu.hours", unit="cpu hours", consumable=True)
    data = ResourceTypeEntity(name="data.size", unit="bytes", consumable=False)
    test_db.add_all([cpu, data])
    await test_db.commit()
    await test_db.refresh(cpu)
    await test_db.refresh(data)
    return {"cpu.hours": cpu, "data.size": data}


@pytest_asyncio.fixture(scope="function")
async def basic_plan(test_db: AsyncSession, resource_types):
    """Seed the default Basic plan with its quota defaults and a zero rate."""
    plan = PlanEntity(
        name="Basic",
        description="Basic plan",
        created_by="system",
        last_modified_by="system",
    )
    test_db.add(plan)
    await test_db.flush()

    test_db.add_all(
        [
            PlanQuotaDefaultEntity(
                plan_id=plan.id,
                resource_type_id=resource_types["cpu.hours"].id,
                quota_value=BASIC_CPU_QUOTA,
                effective_date=SEED_DATE,
            ),
            PlanQuotaDefaultEntity(
                plan_id=plan.id,
                resource_type_id=resource_types["data.size"].id,
                quota_value=BASIC_DATA_QUOTA,
                effective_date=SEED_DATE,
            ),
            PlanRateEntity(plan_id=plan.id, rate=0.0, effective_date=SEED_DATE),
        ]
    )
    await test_db.commit()
    await test_db.refresh(plan)
    return plan


@pytest_asyncio.fixture(scope="function")
async def cpu_addon(test_db: AsyncSession, resource_types):
    """Seed an add-on granting 5000 extra cpu.hours, with two rates."""
    addon = AddonEntity(
        name="Extra CPU",
        description="5000 additional compute hours",
        resource_type_id=resource_types["cpu.hours"].id,
        default_amount=5000.0,
        default_paid=True,
    )
    test_db.add(addon)
    await test_db.flush()

    test_db.add_all(
        [
            AddonRateEntity(
                addon_id=addon.id,
                rate=10.0,
                effective_date=datetime(2023, 1, 1, tzinfo=timezone.utc),
            ),
            AddonRateEntity(
                addon_id=addon.id,
                rate=20.0,
                effective_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            ),
        ]
    )
    await test_db.commit()
    await test_db.refresh(addon)
    return addon
