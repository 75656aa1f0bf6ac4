"""
Unit tests for UpdateService.

Tests validation and the record-then-apply pipeline for update events.
"""

import pytest
from datetime import datetime, timezone

from common.core.exceptions import NotFoundError, ValidationError
from common.repositories.base import QueryOptions
from packages.catalog.models.domain.resource_type import ResourceTypeRef
from packages.subscriptions.models.domain.enums import UpdateOperation, ValueType
from packages.subscriptions.models.domain.update import UpdateEventRequest
from packages.subscriptions.services.overage_service import OverageService
from packages.subscriptions.services.quota_service import QuotaService
from packages.subscriptions.services.subscription_service import SubscriptionService
from packages.subscriptions.services.update_service import UpdateService
from packages.subscriptions.services.usage_service import UsageService
from packages.users.repositories.user_repository import UserRepository

EFFECTIVE = datetime(2025, 5, 31, tzinfo=timezone.utc)

CPU = ResourceTypeRef(name="cpu.hours", unit="cpu hours")
DATA = ResourceTypeRef(name="data.size", unit="bytes")


def _request(**overrides):
    fields = dict(
        username="alice",
        resource_type=CPU,
        operation="ADD",
        value=10,
        effective_date=EFFECTIVE,
    )
    fields.update(overrides)
    return UpdateEventRequest(**fields)


@pytest.fixture
def subscription_service(fixed_clock):
    return SubscriptionService(clock=fixed_clock)


@pytest.fixture
def update_service(subscription_service):
    return UpdateService(subscription_service)


@pytest.mark.asyncio
class TestValidation:
    """Tests for request validation."""

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"resource_type": ResourceTypeRef(name="gpu.hours", unit="cpu hours")}, "invalid resource name"),
            ({"resource_type": ResourceTypeRef(name="cpu.hours", unit="hours")}, "invalid resource unit"),
            ({"resource_type": ResourceTypeRef(unit="bytes")}, "invalid resource name"),
            ({"operation": "MULTIPLY"}, "invalid operation name"),
            ({"operation": "add"}, "invalid operation name"),
            ({"value": -1}, "invalid value"),
            ({"effective_date": None}, "invalid effective date"),
            ({"value_type": "credits"}, "invalid value type"),
            ({"username": "@example.org"}, "invalid username"),
        ],
    )
    async def test_rejects_before_writing(
        self, test_db, basic_plan, update_service, overrides, message
    ):
        """Test that each malformed request is rejected and nothing is stored."""
        with pytest.raises(ValidationError, match=message):
            await update_service.add_user_update(_request(**overrides))

        assert await UserRepository().get_by_username("alice") is None

    async def test_validate_returns_normalized_fields(self, update_service):
        """Test that validate normalizes the username and parses enums."""
        username, operation, value_type = update_service.validate(
            _request(username="alice@example.org", operation="SET", value_type="quotas")
        )

        assert username == "alice"
        assert operation is UpdateOperation.SET
        assert value_type is ValueType.QUOTAS


@pytest.mark.asyncio
class TestAddUserUpdate:
    """Tests for the update pipeline."""

    async def test_usage_update_is_recorded_and_applied(
        self, test_db, basic_plan, update_service, subscription_service
    ):
        """Test that an ADD usage event lands in the audit trail and the ledger."""
        event = await update_service.add_user_update(_request(value=7))
        await update_service.add_user_update(_request(value=3))

        assert event.id is not None
        assert event.username == "alice"
        assert event.operation is UpdateOperation.ADD
        assert event.value_type is ValueType.USAGES
        assert event.resource_type.name == "cpu.hours"
        assert event.effective_date == EFFECTIVE
        assert event.created_by == "system"

        usages = await UsageService(subscription_service).list_user_usages("alice")
        assert [(u.resource_type.name, u.usage) for u in usages] == [("cpu.hours", 10.0)]

    async def test_quota_update(
        self, test_db, basic_plan, update_service, subscription_service
    ):
        """Test that a quotas event goes through the quota pipeline."""
        await update_service.add_user_update(
            _request(resource_type=DATA, operation="SET", value=2048, value_type="quotas")
        )

        quotas = await QuotaService(subscription_service).list_user_quotas("alice")
        assert {q.resource_type.name: q.quota for q in quotas} == {
            "cpu.hours": 20000.0,
            "data.size": 2048.0,
        }

    async def test_unknown_name_unit_combination(self, test_db, basic_plan, update_service):
        """Test that a valid name with another resource's unit is not found and rolls back."""
        with pytest.raises(NotFoundError):
            await update_service.add_user_update(
                _request(resource_type=ResourceTypeRef(name="cpu.hours", unit="bytes"))
            )

        assert await UserRepository().get_by_username("alice") is None

    async def test_list_user_updates_newest_first(self, test_db, basic_plan, update_service):
        """Test listing a user's events newest first with paging."""
        for value in (1, 2, 3):
            await update_service.add_user_update(_request(value=value))

        events = await update_service.list_user_updates("alice@example.org")
        assert [e.value for e in events] == [3.0, 2.0, 1.0]

        page = await update_service.list_user_updates(
            "alice", QueryOptions(limit=1, offset=1)
        )
        assert [e.value for e in page] == [2.0]


@pytest.mark.asyncio
class TestAliceEndToEnd:
    """The default-plan provisioning through overage reporting path."""

    async def test_alice(self, test_db, basic_plan, fixed_clock):
        """Test ensure, ADD 20500 cpu.hours, usage, and the resulting overage."""
        subscriptions = SubscriptionService(clock=fixed_clock)
        usage_service = UsageService(subscriptions)
        quota_service = QuotaService(subscriptions)
        updates = UpdateService(subscriptions, usage_service, quota_service)

        subscription = await subscriptions.ensure_active_subscription("alice")
        quotas = {q.resource_type.name: q.quota for q in await quota_service.list_user_quotas("alice")}
        assert quotas["cpu.hours"] == 20000.0

        await updates.add_user_update(_request(value=20500))

        usages = await usage_service.list_user_usages("alice")
        assert [(u.subscription_id, u.resource_type.name, u.usage) for u in usages] == [
            (subscription.id, "cpu.hours", 20500.0)
        ]

        overages = await OverageService(clock=fixed_clock).get_user_overages("alice")
        assert [o.model_dump() for o in overages] == [
            {"resource_name": "cpu.hours", "quota": 20000.0, "usage": 20500.0}
        ]
