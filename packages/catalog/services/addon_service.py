"""
Service for the add-on catalog.

Attaching add-ons to subscriptions is handled by
packages.subscriptions.services.subscription_addon_service.
"""

import logging
from typing import List, Optional

from common.core.exceptions import ConflictError, NotFoundError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from common.repositories.base import QueryOptions, DEFAULT_OPTIONS
from packages.catalog.effective_dates import duplicate_dates
from packages.catalog.models.domain.addon import (
    Addon,
    AddonCreateModel,
    AddonRateModel,
    AddonUpdateModel,
)
from packages.catalog.repositories.addon_repository import AddonRepository
from packages.catalog.services.catalog_service import CatalogService
from packages.subscriptions.repositories.subscription_addon_repository import (
    SubscriptionAddonRepository,
)


def _validate_rates(rates: List[AddonRateModel]) -> None:
    if any(r.rate < 0 for r in rates):
        raise ValidationError("addon rates must not be negative")
    if duplicate_dates(rates):
        raise ValidationError("duplicate addon rate for the same effective date")


class AddonService:
    def __init__(
        self,
        catalog_service: Optional[CatalogService] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or get_logger(__name__)
        self.catalog_service = catalog_service or CatalogService(logger=self.logger)
        self.addon_repo = AddonRepository(logger=self.logger)
        self.subscription_addon_repo = SubscriptionAddonRepository(logger=self.logger)

    async def _get_or_raise(self, addon_id: int) -> Addon:
        addon = await self.addon_repo.get(addon_id)
        if addon is None:
            raise NotFoundError(f"addon {addon_id} not found")
        return addon

    @trace_span
    async def add_addon(self, create_model: AddonCreateModel) -> Addon:
        name = create_model.name.strip()
        if not name:
            raise ValidationError("addon name is required")
        if create_model.default_amount <= 0:
            raise ValidationError("addon default amount must be greater than 0")
        _validate_rates(create_model.rates)

        async with transaction():
            resource_type = await self.catalog_service.resolve_resource_type(
                create_model.resource_type
            )
            if await self.addon_repo.get_by_name(name) is not None:
                raise ConflictError(f"addon '{name}' already exists")

            addon = await self.addon_repo.create_addon(
                {
                    "name": name,
                    "description": create_model.description,
                    "resource_type_id": resource_type.id,
                    "default_amount": create_model.default_amount,
                    "default_paid": create_model.default_paid,
                },
                create_model.rates,
            )

        self.logger.info(
            f"Created addon {addon.name}",
            extra={"addon_id": addon.id, "resource_type_id": resource_type.id},
        )
        return addon

    @trace_span
    async def get_addon(self, addon_id: int) -> Addon:
        return await self._get_or_raise(addon_id)

    @trace_span
    async def list_addons(self, options: QueryOptions = DEFAULT_OPTIONS) -> List[Addon]:
        return await self.addon_repo.list_addons(options)

    @trace_span
    async def update_addon(self, addon_id: int, update: AddonUpdateModel) -> Addon:
        """
        Apply the fields set on `update`. Attached subscription add-ons keep
        the amount they were attached with. The resource type can only change
        while no subscription has the add-on attached.
        """
        fields = update.model_dump(exclude_unset=True)
        values = {}
        if "name" in fields:
            if not (fields["name"] or "").strip():
                raise ValidationError("addon name is required")
            values["name"] = fields["name"].strip()
        if "description" in fields:
            values["description"] = fields["description"] or ""
        if "default_amount" in fields:
            if fields["default_amount"] is None or fields["default_amount"] <= 0:
                raise ValidationError("addon default amount must be greater than 0")
            values["default_amount"] = fields["default_amount"]
        if "default_paid" in fields:
            if fields["default_paid"] is None:
                raise ValidationError("default paid must be true or false")
            values["default_paid"] = fields["default_paid"]
        if update.rates is not None:
            _validate_rates(update.rates)

        async with transaction():
            if update.resource_type is not None:
                current = await self._get_or_raise(addon_id)
                resource_type = await self.catalog_service.resolve_resource_type(
                    update.resource_type
                )
                if resource_type.id != current.resource_type.id:
                    # detach reverses the quota of the add-on's resource type
                    attached = await self.subscription_addon_repo.count_for_addon(
                        addon_id
                    )
                    if attached:
                        raise ConflictError(
                            f"addon {addon_id} is attached to {attached} "
                            "subscription(s); its resource type cannot change"
                        )
                values["resource_type_id"] = resource_type.id

            if not await self.addon_repo.update_fields(addon_id, values):
                raise NotFoundError(f"addon {addon_id} not found")
            if update.rates is not None:
                await self.addon_repo.replace_rates(addon_id, update.rates)

            addon = await self._get_or_raise(addon_id)

        self.logger.info(
            f"Updated addon {addon_id}",
            extra={"fields": sorted(fields)},
        )
        return addon

    @trace_span
    async def toggle_addon_paid(self, addon_id: int) -> Addon:
        async with transaction():
            addon = await self._get_or_raise(addon_id)
            await self.addon_repo.update_fields(
                addon_id, {"default_paid": not addon.default_paid}
            )
            return await self._get_or_raise(addon_id)

    @trace_span
    async def delete_addon(self, addon_id: int) -> Addon:
        """Delete an add-on that is not attached to any subscription."""
        async with transaction():
            addon = await self._get_or_raise(addon_id)
            attached = await self.subscription_addon_repo.count_for_addon(addon_id)
            if attached:
                raise ConflictError(
                    f"addon {addon_id} is attached to {attached} subscription(s)"
                )
            await self.addon_repo.delete(addon_id)

        self.logger.info(f"Deleted addon {addon.name}", extra={"addon_id": addon_id})
        return addon
