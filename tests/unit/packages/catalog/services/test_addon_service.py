"""
Unit tests for AddonService.

Tests the add-on catalog: creation, partial updates, rate replacement and
guarded deletion.
"""

import pytest
from datetime import datetime, timezone

from common.core.exceptions import ConflictError, NotFoundError, ValidationError
from packages.catalog.models.domain.addon import (
    AddonCreateModel,
    AddonRateModel,
    AddonUpdateModel,
)
from packages.catalog.models.domain.resource_type import ResourceTypeRef
from packages.catalog.services.addon_service import AddonService
from packages.subscriptions.repositories.ledger_repository import QuotaRepository
from packages.subscriptions.services.subscription_addon_service import (
    SubscriptionAddonService,
)
from packages.subscriptions.services.subscription_service import SubscriptionService


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def _storage_addon(**overrides):
    fields = dict(
        name="Extra Storage",
        description="100 GB more",
        resource_type=ResourceTypeRef(name="data.size", unit="bytes"),
        default_amount=107374182400,
        default_paid=False,
        rates=[
            AddonRateModel(rate=10.0, effective_date=_utc(2023, 1, 1)),
            AddonRateModel(rate=20.0, effective_date=_utc(2024, 1, 1)),
        ],
    )
    fields.update(overrides)
    return AddonCreateModel(**fields)


@pytest.mark.asyncio
class TestAddonCreation:
    """Tests for add_addon."""

    async def test_add_addon(self, test_db, resource_types):
        """Test that an add-on is stored with its resource type and rates."""
        service = AddonService()

        addon = await service.add_addon(_storage_addon())

        assert addon.id is not None
        assert addon.resource_type.name == "data.size"
        assert addon.default_paid is False
        assert [r.rate for r in addon.rates] == [10.0, 20.0]
        assert addon.current_rate(_utc(2023, 6, 1)).rate == 10.0
        assert addon.current_rate(_utc(2024, 6, 1)).rate == 20.0

        fetched = await service.get_addon(addon.id)
        assert fetched == addon

    @pytest.mark.parametrize("amount", [0, -5])
    async def test_non_positive_amount_is_invalid(self, test_db, resource_types, amount):
        """Test that the default amount must be greater than zero."""
        service = AddonService()

        with pytest.raises(ValidationError):
            await service.add_addon(_storage_addon(default_amount=amount))

    async def test_duplicate_rate_dates_are_invalid(self, test_db, resource_types):
        """Test that two rates on the same date are rejected."""
        service = AddonService()
        rates = [
            AddonRateModel(rate=1.0, effective_date=_utc(2024, 1, 1)),
            AddonRateModel(rate=2.0, effective_date=_utc(2024, 1, 1)),
        ]

        with pytest.raises(ValidationError):
            await service.add_addon(_storage_addon(rates=rates))

    async def test_duplicate_name_conflicts(self, test_db, resource_types, cpu_addon):
        """Test that add-on names are unique."""
        service = AddonService()

        with pytest.raises(ConflictError):
            await service.add_addon(_storage_addon(name="Extra CPU"))

    async def test_unknown_resource_type(self, test_db, resource_types):
        """Test that an unknown resource type is not found."""
        service = AddonService()

        with pytest.raises(NotFoundError):
            await service.add_addon(
                _storage_addon(resource_type=ResourceTypeRef(name="gpu.hours"))
            )

    async def test_list_addons(self, test_db, resource_types, cpu_addon):
        """Test that add-ons are listed by name."""
        service = AddonService()
        await service.add_addon(_storage_addon())

        listed = await service.list_addons()

        assert [a.name for a in listed] == ["Extra CPU", "Extra Storage"]


@pytest.mark.asyncio
class TestAddonUpdate:
    """Tests for update_addon and toggle_addon_paid."""

    async def test_partial_update_changes_only_set_fields(
        self, test_db, resource_types, cpu_addon
    ):
        """Test that unset fields keep their stored values."""
        service = AddonService()

        updated = await service.update_addon(
            cpu_addon.id, AddonUpdateModel(default_amount=7500)
        )

        assert updated.default_amount == 7500
        assert updated.name == "Extra CPU"
        assert updated.default_paid is True
        assert [r.rate for r in updated.rates] == [10.0, 20.0]

    async def test_rates_are_replaced(self, test_db, resource_types, cpu_addon):
        """Test that a supplied rate list becomes the whole rate history."""
        service = AddonService()
        rates = [
            AddonRateModel(rate=25.0, effective_date=_utc(2024, 1, 1)),
            AddonRateModel(rate=30.0, effective_date=_utc(2025, 1, 1)),
        ]

        updated = await service.update_addon(cpu_addon.id, AddonUpdateModel(rates=rates))

        assert [(r.rate, r.effective_date) for r in updated.rates] == [
            (25.0, _utc(2024, 1, 1)),
            (30.0, _utc(2025, 1, 1)),
        ]

    async def test_update_missing_addon(self, test_db, resource_types):
        """Test that updating an unknown add-on is not found."""
        service = AddonService()

        with pytest.raises(NotFoundError):
            await service.update_addon(999, AddonUpdateModel(description="x"))

    async def test_update_rejects_non_positive_amount(
        self, test_db, resource_types, cpu_addon
    ):
        """Test that partial updates validate the amount."""
        service = AddonService()

        with pytest.raises(ValidationError):
            await service.update_addon(cpu_addon.id, AddonUpdateModel(default_amount=0))

    async def test_resource_type_change_on_unattached_addon(
        self, test_db, resource_types, cpu_addon
    ):
        """Test that an unattached add-on can move to another resource type."""
        updated = await AddonService().update_addon(
            cpu_addon.id,
            AddonUpdateModel(
                resource_type=ResourceTypeRef(name="data.size", unit="bytes")
            ),
        )

        assert updated.resource_type.name == "data.size"

    async def test_resource_type_change_on_attached_addon_conflicts(
        self, test_db, basic_plan, resource_types, cpu_addon, fixed_clock
    ):
        """Test that an attached add-on keeps its resource type until detached."""
        subscription = await SubscriptionService(clock=fixed_clock).ensure_active_subscription(
            "alice"
        )
        addon_service = SubscriptionAddonService(clock=fixed_clock)
        attached = await addon_service.add_subscription_addon(
            subscription.id, cpu_addon.id
        )

        with pytest.raises(ConflictError):
            await AddonService().update_addon(
                cpu_addon.id,
                AddonUpdateModel(
                    resource_type=ResourceTypeRef(name="data.size", unit="bytes")
                ),
            )

        addon = await AddonService().get_addon(cpu_addon.id)
        assert addon.resource_type.name == "cpu.hours"

        await addon_service.delete_subscription_addon(attached.id)
        cpu = await QuotaRepository().get_current_quota(
            resource_types["cpu.hours"].id, subscription.id
        )
        data = await QuotaRepository().get_current_quota(
            resource_types["data.size"].id, subscription.id
        )
        assert cpu.value == 20000.0
        assert data.value == 5368709120.0

    async def test_same_resource_type_on_attached_addon_is_allowed(
        self, test_db, basic_plan, cpu_addon, fixed_clock
    ):
        """Test that restating the current resource type is not a change."""
        subscription = await SubscriptionService(clock=fixed_clock).ensure_active_subscription(
            "alice"
        )
        await SubscriptionAddonService(clock=fixed_clock).add_subscription_addon(
            subscription.id, cpu_addon.id
        )

        updated = await AddonService().update_addon(
            cpu_addon.id,
            AddonUpdateModel(
                resource_type=ResourceTypeRef(name="cpu.hours", unit="cpu hours"),
                description="restated",
            ),
        )

        assert updated.resource_type.name == "cpu.hours"
        assert updated.description == "restated"

    async def test_toggle_paid(self, test_db, resource_types, cpu_addon):
        """Test that toggling flips the default paid flag each time."""
        service = AddonService()

        assert (await service.toggle_addon_paid(cpu_addon.id)).default_paid is False
        assert (await service.toggle_addon_paid(cpu_addon.id)).default_paid is True


@pytest.mark.asyncio
class TestAddonDeletion:
    """Tests for delete_addon."""

    async def test_delete_unattached_addon(self, test_db, resource_types, cpu_addon):
        """Test that an unattached add-on and its rates are removed."""
        service = AddonService()

        deleted = await service.delete_addon(cpu_addon.id)

        assert deleted.name == "Extra CPU"
        with pytest.raises(NotFoundError):
            await service.get_addon(cpu_addon.id)

    async def test_delete_attached_addon_conflicts(
        self, test_db, basic_plan, cpu_addon, fixed_clock
    ):
        """Test that an add-on still attached to a subscription cannot be deleted."""
        subscription = await SubscriptionService(clock=fixed_clock).ensure_active_subscription(
            "alice"
        )
        await SubscriptionAddonService(clock=fixed_clock).add_subscription_addon(
            subscription.id, cpu_addon.id
        )

        with pytest.raises(ConflictError):
            await AddonService().delete_addon(cpu_addon.id)

        assert (await AddonService().get_addon(cpu_addon.id)).name == "Extra CPU"

    async def test_delete_missing_addon(self, test_db):
        """Test that deleting an unknown add-on is not found."""
        with pytest.raises(NotFoundError):
            await AddonService().delete_addon(12345)
