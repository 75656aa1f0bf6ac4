"""
Service for the usage ledger.

Every read-modify-write of a usage value runs inside one transaction and
reads the current row with FOR UPDATE, so concurrent ADDs against the same
(resource type, subscription) serialize instead of losing increments.
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
    Usage,
)
from packages.subscriptions.models.domain.update import UpdateEvent
from packages.subscriptions.operations import apply_operation, parse_operation
from packages.subscriptions.repositories.ledger_repository import UsageRepository
from packages.subscriptions.services.subscription_service import SubscriptionService


class UsageService:
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
        self.usage_repo = UsageRepository(logger=self.logger)
        self.resource_type_repo = ResourceTypeRepository(logger=self.logger)

    @trace_span
    async def get_current_usage(
        self, resource_type_id: int, subscription_id: int
    ) -> CurrentValue:
        return await self.usage_repo.get_current_usage(resource_type_id, subscription_id)

    @trace_span
    async def upsert_usage(
        self, value: float, resource_type_id: int, subscription_id: int
    ) -> None:
        await self.usage_repo.upsert_usage(
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
        """
        SET replaces the stored usage, ADD adds to it (a missing row counts
        as 0). Returns the new value.
        """
        op = parse_operation(operation)
        outermost = not in_transaction()
        async with transaction():
            current = await self.usage_repo.get_current_usage(
                resource_type_id, subscription_id, for_update=True
            )
            new_value = apply_operation(op, current.value, value)
            await self.usage_repo.upsert_usage(
                new_value, resource_type_id, subscription_id, self.system_username
            )
            self.logger.debug(
                f"Usage {op.value} {value} -> {new_value} (uncommitted)",
                extra={
                    "resource_type_id": resource_type_id,
                    "subscription_id": subscription_id,
                    "previous": current.value,
                },
            )

        if outermost:
            self.logger.info(
                f"Usage {op.value} {value} -> {new_value}",
                extra={
                    "resource_type_id": resource_type_id,
                    "subscription_id": subscription_id,
                    "previous": current.value,
                    "new_value": new_value,
                },
            )
        return new_value

    @trace_span
    async def process_update_for_usage(self, update: UpdateEvent) -> float:
        """Apply a recorded update event to the user's active subscription."""
        async with transaction():
            subscription = await self.subscription_service.ensure_active_subscription(
                update.username
            )
            return await self.apply_update(
                update.operation, update.resource_type.id, subscription.id, update.value
            )

    @trace_span
    async def set_usage(self, adjustment: LedgerAdjustment) -> float:
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
                f"Set usage for {adjustment.username}: "
                f"{adjustment.operation} {adjustment.value} -> {new_value}",
                extra={"resource_name": adjustment.resource_name, "new_value": new_value},
            )
        return new_value

    @trace_span
    async def list_user_usages(self, username: str) -> List[Usage]:
        subscription = await self.subscription_service.get_active_subscription(username)
        if subscription is None:
            return []
        return await self.usage_repo.list_usages(subscription.id)
