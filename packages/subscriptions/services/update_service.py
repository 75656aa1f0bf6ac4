"""
Service for update events.

An update event is validated before anything is written, then recorded and
applied to the usage or quota ledger in a single transaction: either the
audit row and the new ledger value both land, or neither does.
"""

import logging
from typing import List, Optional, Tuple

from common.core.config import settings
from common.core.exceptions import NotFoundError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from common.repositories.base import QueryOptions, DEFAULT_OPTIONS
from packages.catalog.repositories.resource_type_repository import (
    ResourceTypeRepository,
)
from packages.subscriptions.models.domain.enums import (
    ResourceName,
    ResourceUnit,
    UpdateOperation,
    ValueType,
)
from packages.subscriptions.models.domain.update import (
    UpdateCreateModel,
    UpdateEvent,
    UpdateEventRequest,
)
from packages.subscriptions.operations import parse_operation
from packages.subscriptions.repositories.update_repository import UpdateRepository
from packages.subscriptions.services.quota_service import QuotaService
from packages.subscriptions.services.subscription_service import SubscriptionService
from packages.subscriptions.services.usage_service import UsageService
from packages.users.models.domain.user import normalize_username
from packages.users.repositories.user_repository import UserRepository

_RESOURCE_NAMES = {name.value for name in ResourceName}
_RESOURCE_UNITS = {unit.value for unit in ResourceUnit}


class UpdateService:
    def __init__(
        self,
        subscription_service: Optional[SubscriptionService] = None,
        usage_service: Optional[UsageService] = None,
        quota_service: Optional[QuotaService] = None,
        system_username: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or get_logger(__name__)
        self.system_username = system_username or settings.system_username
        subscription_service = subscription_service or SubscriptionService(
            logger=self.logger
        )
        self.usage_service = usage_service or UsageService(
            subscription_service, logger=self.logger
        )
        self.quota_service = quota_service or QuotaService(
            subscription_service, logger=self.logger
        )
        self.user_repo = UserRepository(logger=self.logger)
        self.resource_type_repo = ResourceTypeRepository(logger=self.logger)
        self.update_repo = UpdateRepository(logger=self.logger)

    def validate(
        self, request: UpdateEventRequest
    ) -> Tuple[str, UpdateOperation, ValueType]:
        """
        Check an update request without touching storage.

        Returns the normalized username, operation and value type; raises
        ValidationError describing the first problem found.
        """
        username = normalize_username(request.username)

        name = (request.resource_type.name or "").strip()
        if not name or name not in _RESOURCE_NAMES:
            raise ValidationError(f"invalid resource name: {name!r}")
        unit = (request.resource_type.unit or "").strip()
        if not unit or unit not in _RESOURCE_UNITS:
            raise ValidationError(f"invalid resource unit: {unit!r}")

        operation = parse_operation(request.operation)
        try:
            value_type = ValueType(request.value_type)
        except ValueError:
            raise ValidationError(
                f"invalid value type: {request.value_type!r}"
            ) from None

        if request.value < 0:
            raise ValidationError("invalid value: must not be negative")
        if request.effective_date is None:
            raise ValidationError("invalid effective date")

        return username, operation, value_type

    @trace_span
    async def add_user_update(self, request: UpdateEventRequest) -> UpdateEvent:
        """Record an update event and apply it to the user's active subscription."""
        try:
            username, operation, value_type = self.validate(request)
        except ValidationError as e:
            self.logger.warning(
                f"Rejected update for {request.username}: {e}",
                extra={"operation": request.operation, "value_type": request.value_type},
            )
            raise

        async with transaction():
            user = await self.user_repo.ensure_user(username)
            resource_type = await self.resource_type_repo.get_by_name_and_unit(
                request.resource_type.name.strip(), request.resource_type.unit.strip()
            )
            if resource_type is None:
                raise NotFoundError(
                    f"resource type {request.resource_type.name!r} "
                    f"with unit {request.resource_type.unit!r} not found"
                )

            event = await self.update_repo.record_update(
                UpdateCreateModel(
                    user_id=user.id,
                    resource_type_id=resource_type.id,
                    operation=operation,
                    value_type=value_type,
                    value=request.value,
                    effective_date=request.effective_date,
                    created_by=self.system_username,
                )
            )

            if value_type == ValueType.USAGES:
                new_value = await self.usage_service.process_update_for_usage(event)
            else:
                new_value = await self.quota_service.process_update_for_quota(event)

        self.logger.info(
            f"Applied update {event.id} for {username}",
            extra={
                "update_id": event.id,
                "resource_type_id": resource_type.id,
                "value_type": value_type.value,
                "new_value": new_value,
            },
        )
        return event

    @trace_span
    async def list_user_updates(
        self, username: str, options: QueryOptions = DEFAULT_OPTIONS
    ) -> List[UpdateEvent]:
        return await self.update_repo.list_for_username(
            normalize_username(username), options
        )
