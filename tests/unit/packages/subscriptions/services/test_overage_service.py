"""
Unit tests for OverageService.

Tests which resources are reported as over quota.
"""

import pytest

from packages.subscriptions.services.overage_service import OverageService
from packages.subscriptions.services.subscription_service import SubscriptionService
from packages.subscriptions.services.usage_service import UsageService


@pytest.fixture
def subscription_service(fixed_clock):
    return SubscriptionService(clock=fixed_clock)


@pytest.fixture
def usage_service(subscription_service):
    return UsageService(subscription_service)


@pytest.mark.asyncio
class TestGetUserOverages:
    """Tests for get_user_overages and check_user_overages."""

    async def test_no_usage_row_is_excluded(
        self, test_db, basic_plan, subscription_service, fixed_clock
    ):
        """Test that a quota without a usage row is never an overage."""
        await subscription_service.ensure_active_subscription("alice")
        service = OverageService(clock=fixed_clock)

        assert await service.get_user_overages("alice") == []
        assert await service.check_user_overages("alice", "cpu.hours") is False

    async def test_usage_at_or_above_quota_is_included(
        self, test_db, basic_plan, resource_types, subscription_service, usage_service, fixed_clock
    ):
        """Test that usage equal to the quota counts and usage below it does not."""
        subscription = await subscription_service.ensure_active_subscription("alice")
        await usage_service.apply_update(
            "SET", resource_types["cpu.hours"].id, subscription.id, 20000
        )
        await usage_service.apply_update(
            "SET", resource_types["data.size"].id, subscription.id, 1024
        )
        service = OverageService(clock=fixed_clock)

        overages = await service.get_user_overages("alice")

        assert [(o.resource_name, o.quota, o.usage) for o in overages] == [
            ("cpu.hours", 20000.0, 20000.0)
        ]
        assert await service.check_user_overages("alice", "cpu.hours") is True
        assert await service.check_user_overages("alice", "data.size") is False

    async def test_switch_off_reports_nothing(
        self, test_db, basic_plan, resource_types, subscription_service, usage_service, fixed_clock
    ):
        """Test that disabling reporting empties the result even when over quota."""
        subscription = await subscription_service.ensure_active_subscription("alice")
        await usage_service.apply_update(
            "ADD", resource_types["cpu.hours"].id, subscription.id, 50000
        )
        service = OverageService(report_overages=False, clock=fixed_clock)

        assert await service.get_user_overages("alice") == []
        assert await service.check_user_overages("alice", "cpu.hours") is False

    async def test_unknown_user_gets_no_subscription(
        self, test_db, basic_plan, subscription_service, fixed_clock
    ):
        """Test that asking about overages never provisions a subscription."""
        service = OverageService(clock=fixed_clock)

        assert await service.get_user_overages("ghost") == []
        assert await subscription_service.get_active_subscription("ghost") is None
