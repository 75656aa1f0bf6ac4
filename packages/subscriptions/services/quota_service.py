"""
Service for the quota store.

Quotas are seeded from plan defaults when a subscription opens, moved by
update events and admin corrections, and raised or lowered in lockstep
with attached add-ons. All read-modify-write paths lock the quota row.
"""

import logging
from typing import List, Optional

from common.core.config import settings
from common.core.exceptions import NotFoundError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.context import in_transaction
from common.db.scoped import transaction
from packages.catalog.repositories.resource_type_repository import (
    ResourceTypeRepository,
)
from packages.subscriptions.models.domain.ledger import (
    CurrentValue,
    LedgerAdjustment,
    Quota,
)
from packages.subscriptions.models.domain.update import UpdateEvent
from packages.subscriptions.operations import apply_operation, parse_operation
from packages.subscriptions.repositories.ledger_repository import QuotaRepository
from packages.subscriptions.services.subscription_service import SubscriptionService


class QuotaService:
    def __init__(
        self,
        subscription_service: Optional[SubscriptionService] = None,
        system_username: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or get_logger(__name__)
        self.system_username = system_username or settings.system_username
        self.subscription_service = subscription_service or SubscriptionService(
            logger=self.logger
        )
        self.quota_repo = QuotaRepository(logger=self.logger)
        self.resource_type_repo = ResourceTypeRepository(logger=self.logger)

    @trace_span
    async def get_current_quota(
        self, resource_type_id: int, subscription_id: int
    ) -> CurrentValue:
        return await self.quota_repo.get_current_quota(resource_type_id, subscription_id)

    @trace_span
    async def upsert_quota(
        self, value: float, resource_type_id: int, subscription_id: int
    ) -> None:
        """Last-write-wins overwrite; callers compute the absolute value."""
        await self.quota_repo.upsert_quota(
            value, resource_type_id, subscription_id, self.system_username
        )

    @trace_span
    async def apply_update(
        self,
        operation: str,
        resource_type_id: int,
        subscription_id: int,
        value: float,
    ) -> float:
        op = parse_operation(operation)
        outermost = not in_transaction()
        async with transaction():
            current = await self.quota_repo.get_current_quota(
                resource_type_id, subscription_id, for_update=True
            )
            new_value = apply_operation(op, current.value, value)
            await self.quota_repo.upsert_quota(
                new_value, resource_type_id, subscription_id, self.system_username
            )
            self.logger.debug(
                f"Quota {op.value} {value} -> {new_value} (uncommitted)",
                extra={
                    "resource_type_id": resource_type_id,
                    "subscription_id": subscription_id,
                    "previous": current.value,
                },
            )

        if outermost:
            self.logger.info(
                f"Quota {op.value} {value} -> {new_value}",
                extra={
                    "resource_type_id": resource_type_id,
                    "subscription_id": subscription_id,
                    "previous": current.value,
                    "new_value": new_value,
                },
            )
        return new_value

    @trace_span
    async def adjust_quota(
        self, resource_type_id: int, subscription_id: int, delta: float
    ) -> float:
        """
        Move the quota by delta. The result is floored at 0, which only
        matters if the quota was lowered after an add-on raised it.
        """
        async with transaction():
            current = await self.quota_repo.get_current_quota(
                resource_type_id, subscription_id, for_update=True
            )
            new_value = current.value + delta
            if new_value < 0:
                self.logger.warning(
                    f"Quota adjustment by {delta} would go negative, flooring at 0",
                    extra={
                        "resource_type_id": resource_type_id,
                        "subscription_id": subscription_id,
                        "previous": current.value,
                    },
                )
                new_value = 0.0
            await self.quota_repo.upsert_quota(
                new_value, resource_type_id, subscription_id, self.system_username
            )
            return new_value

    @trace_span
    async def process_update_for_quota(self, update: UpdateEvent) -> float:
        async with transaction():
            subscription = await self.subscription_service.ensure_active_subscription(
                update.username
            )
            return await self.apply_update(
                update.operation, update.resource_type.id, subscription.id, update.value
            )

    @trace_span
    async def set_quota(self, adjustment: LedgerAdjustment) -> float:
        """Administrative correction; no update event is recorded."""
        outermost = not in_transaction()
        async with transaction():
            resource_type = await self.resource_type_repo.get_by_name(
                adjustment.resource_name
            )
            if resource_type is None:
                raise NotFoundError(
                    f"resource type '{adjustment.resource_name}' not found"
                )
            subscription = await self.subscription_service.ensure_active_subscription(
                adjustment.username
            )
            new_value = await self.apply_update(
                adjustment.operation,
                resource_type.id,
                subscription.id,
                adjustment.value,
            )

        if outermost:
            self.logger.info(
                f"Set quota for {adjustment.username}: "
                f"{adjustment.operation} {adjustment.value} -> {new_value}",
                extra={"resource_name": adjustment.resource_name, "new_value": new_value},
            )
        return new_value

    @trace_span
    async def list_user_quotas(self, username: str) -> List[Quota]:
        subscription = await self.subscription_service.get_active_subscription(username)
        if subscription is None:
            return []
        return await self.quota_repo.list_quotas(subscription.id)
