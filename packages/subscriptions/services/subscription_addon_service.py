"""
Service for add-ons attached to subscriptions.

An attached add-on raises its resource type's quota on the subscription by
its amount. Attach, detach and amount changes each move the quota by
exactly that contribution in the same transaction as the row change.
"""

import logging
from typing import List, Optional

from common.core.clock import Clock, utcnow
from common.core.exceptions import NotFoundError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.catalog.repositories.addon_repository import AddonRepository
from packages.subscriptions.models.domain.subscription_addon import (
    SubscriptionAddon,
    SubscriptionAddonCreateModel,
    SubscriptionAddonUpdateModel,
)
from packages.subscriptions.repositories.subscription_addon_repository import (
    SubscriptionAddonRepository,
)
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.services.quota_service import QuotaService


class SubscriptionAddonService:
    def __init__(
        self,
        quota_service: Optional[QuotaService] = None,
        clock: Clock = utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or get_logger(__name__)
        self.clock = clock
        self.quota_service = quota_service or QuotaService(logger=self.logger)
        self.addon_repo = AddonRepository(logger=self.logger)
        self.subscription_repo = SubscriptionRepository(logger=self.logger)
        self.subscription_addon_repo = SubscriptionAddonRepository(logger=self.logger)

    async def _get_or_raise(
        self, subscription_addon_id: int, for_update: bool = False
    ) -> SubscriptionAddon:
        subscription_addon = await self.subscription_addon_repo.get(
            subscription_addon_id, for_update=for_update
        )
        if subscription_addon is None:
            raise NotFoundError(
                f"subscription addon {subscription_addon_id} not found"
            )
        return subscription_addon

    @trace_span
    async def add_subscription_addon(
        self, subscription_id: int, addon_id: int
    ) -> SubscriptionAddon:
        """Attach an add-on with its default amount and paid flag."""
        async with transaction():
            if await self.subscription_repo.get(subscription_id) is None:
                raise NotFoundError(f"subscription {subscription_id} not found")
            addon = await self.addon_repo.get(addon_id)
            if addon is None:
                raise NotFoundError(f"addon {addon_id} not found")

            rate = addon.current_rate(self.clock())
            subscription_addon = (
                await self.subscription_addon_repo.create_subscription_addon(
                    SubscriptionAddonCreateModel(
                        subscription_id=subscription_id,
                        addon_id=addon.id,
                        addon_rate_id=rate.id if rate else None,
                        amount=addon.default_amount,
                        paid=addon.default_paid,
                    )
                )
            )
            new_quota = await self.quota_service.adjust_quota(
                addon.resource_type.id, subscription_id, addon.default_amount
            )

        self.logger.info(
            f"Attached addon {addon.name} to subscription {subscription_id}",
            extra={
                "subscription_addon_id": subscription_addon.id,
                "amount": addon.default_amount,
                "new_quota": new_quota,
            },
        )
        return subscription_addon

    @trace_span
    async def delete_subscription_addon(
        self, subscription_addon_id: int
    ) -> SubscriptionAddon:
        """Detach an add-on, taking its amount back off the quota."""
        async with transaction():
            subscription_addon = await self._get_or_raise(
                subscription_addon_id, for_update=True
            )
            new_quota = await self.quota_service.adjust_quota(
                subscription_addon.addon.resource_type.id,
                subscription_addon.subscription_id,
                -subscription_addon.amount,
            )
            await self.subscription_addon_repo.delete(subscription_addon_id)

        self.logger.info(
            f"Detached subscription addon {subscription_addon_id}",
            extra={
                "subscription_id": subscription_addon.subscription_id,
                "amount": subscription_addon.amount,
                "new_quota": new_quota,
            },
        )
        return subscription_addon

    @trace_span
    async def update_subscription_addon(
        self, subscription_addon_id: int, update: SubscriptionAddonUpdateModel
    ) -> SubscriptionAddon:
        """
        Change amount and/or paid. A new amount moves the linked quota by
        the difference so the add-on's contribution stays exact.
        """
        fields = update.model_dump(exclude_unset=True)
        if "amount" in fields and (fields["amount"] is None or fields["amount"] <= 0):
            raise ValidationError("addon amount must be greater than 0")
        if "paid" in fields and fields["paid"] is None:
            raise ValidationError("paid must be true or false")

        async with transaction():
            current = await self._get_or_raise(subscription_addon_id, for_update=True)
            await self.subscription_addon_repo.update(subscription_addon_id, update)

            delta = fields.get("amount", current.amount) - current.amount
            if delta:
                await self.quota_service.adjust_quota(
                    current.addon.resource_type.id, current.subscription_id, delta
                )
                self.logger.info(
                    f"Subscription addon {subscription_addon_id} amount changed by {delta}",
                    extra={"subscription_id": current.subscription_id},
                )
            return await self.subscription_addon_repo.get(subscription_addon_id)

    @trace_span
    async def get_subscription_addon(
        self, subscription_addon_id: int
    ) -> SubscriptionAddon:
        return await self._get_or_raise(subscription_addon_id)

    @trace_span
    async def list_subscription_addons(
        self, subscription_id: int
    ) -> List[SubscriptionAddon]:
        return await self.subscription_addon_repo.list_for_subscription(subscription_id)

    @trace_span
    async def list_subscription_addons_by_addon(
        self, addon_id: int
    ) -> List[SubscriptionAddon]:
        return await self.subscription_addon_repo.list_for_addon(addon_id)
