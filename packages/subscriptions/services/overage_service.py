"""
Service for overage detection.

Reporting can be switched off process-wide (settings.report_overages); when
off, every user is reported as having no overages and nothing is queried.
"""

import logging
from typing import List, Optional

from common.core.clock import Clock, utcnow
from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger, log_span_event
from common.db.context import readonly
from common.db.scoped import transaction
from packages.subscriptions.models.domain.ledger import Overage
from packages.subscriptions.repositories.overage_repository import OverageRepository
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.users.models.domain.user import normalize_username


class OverageService:
    def __init__(
        self,
        report_overages: Optional[bool] = None,
        clock: Clock = utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or get_logger(__name__)
        self.report_overages = (
            settings.report_overages if report_overages is None else report_overages
        )
        self.clock = clock
        self.subscription_repo = SubscriptionRepository(logger=self.logger)
        self.overage_repo = OverageRepository(logger=self.logger)

    @trace_span
    @readonly
    async def get_user_overages(self, username: str) -> List[Overage]:
        """
        Overages on the user's active subscription. A user without one has
        none; this never opens a subscription.
        """
        if not self.report_overages:
            return []

        username = normalize_username(username)
        async with transaction():
            subscription = await self.subscription_repo.get_active_for_username(
                username, self.clock()
            )
            if subscription is None:
                return []
            overages = await self.overage_repo.list_overages(subscription.id)

        for overage in overages:
            log_span_event(
                f"Overage for {username} on {overage.resource_name}",
                {
                    "subscription_id": subscription.id,
                    "resource_name": overage.resource_name,
                    "quota": overage.quota,
                    "usage": overage.usage,
                },
                logger=self.logger,
            )
        return overages

    @trace_span
    async def check_user_overages(self, username: str, resource_name: str) -> bool:
        if not self.report_overages:
            return False
        overages = await self.get_user_overages(username)
        return any(overage.resource_name == resource_name for overage in overages)
