"""
Service for resolving and opening subscriptions.

A user has at most one active subscription: the one whose effective window
contains now. Users without one get a subscription to the default plan on
first access, seeded with the plan's current quota defaults.
"""

import logging
from datetime import datetime
from typing import Optional

from common.core.clock import Clock, add_years, ensure_utc, utcnow
from common.core.config import settings
from common.core.exceptions import AppException, NotFoundError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.catalog.models.domain.plan import Plan
from packages.catalog.repositories.plan_repository import PlanRepository
from packages.subscriptions.models.domain.subscription import (
    SubscribeRequest,
    Subscription,
    SubscriptionCreateModel,
    SubscriptionDetails,
    SubscriptionOptions,
)
from packages.subscriptions.repositories.ledger_repository import (
    QuotaRepository,
    UsageRepository,
)
from packages.subscriptions.repositories.subscription_addon_repository import (
    SubscriptionAddonRepository,
)
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.users.models.domain.user import User, normalize_username
from packages.users.repositories.user_repository import UserRepository


class SubscriptionService:
    """Subscription resolver."""

    def __init__(
        self,
        default_plan_name: Optional[str] = None,
        system_username: Optional[str] = None,
        clock: Clock = utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or get_logger(__name__)
        self.default_plan_name = default_plan_name or settings.default_plan_name
        self.system_username = system_username or settings.system_username
        self.clock = clock
        self.user_repo = UserRepository(logger=self.logger)
        self.plan_repo = PlanRepository(logger=self.logger)
        self.subscription_repo = SubscriptionRepository(logger=self.logger)
        self.quota_repo = QuotaRepository(logger=self.logger)
        self.usage_repo = UsageRepository(logger=self.logger)
        self.subscription_addon_repo = SubscriptionAddonRepository(logger=self.logger)

    def build_options(
        self,
        paid: bool = True,
        periods: Optional[int] = None,
        end_date: Optional[datetime] = None,
    ) -> SubscriptionOptions:
        """
        Validate subscription options. A missing or zero period count means
        one year; an explicit end date must be in the future.
        """
        if periods is None or periods == 0:
            periods = 1
        if periods < 0:
            raise ValidationError("the number of periods must not be negative")
        if end_date is not None and ensure_utc(end_date) <= self.clock():
            raise ValidationError("the end date must be in the future")
        return SubscriptionOptions(paid=paid, periods=periods, end_date=end_date)

    @trace_span
    async def get_active_subscription(self, username: str) -> Optional[Subscription]:
        username = normalize_username(username)
        return await self.subscription_repo.get_active_for_username(
            username, self.clock()
        )

    @trace_span
    async def ensure_active_subscription(
        self, username: str, options: Optional[SubscriptionOptions] = None
    ) -> Subscription:
        """
        Return the user's active subscription, opening one on the default
        plan if there is none. The user is created if missing.

        Raises AppException (internal) if the default plan does not exist.
        """
        username = normalize_username(username)
        async with transaction():
            active = await self.subscription_repo.get_active_for_username(
                username, self.clock()
            )
            if active is not None:
                return active

            user = await self._lock_user(username)
            # Another request may have opened one while we waited for the lock
            now = self.clock()
            active = await self.subscription_repo.get_active_for_username(username, now)
            if active is not None:
                return active

            plan = await self.plan_repo.get_by_name(self.default_plan_name)
            if plan is None:
                self.logger.error(
                    f"Default plan {self.default_plan_name} is missing",
                    extra={"username": username},
                )
                raise AppException(
                    f"default plan '{self.default_plan_name}' not found"
                )

            return await self._open_subscription(
                user, plan, options or SubscriptionOptions(), now
            )

    @trace_span
    async def subscribe(self, request: SubscribeRequest) -> Subscription:
        """
        Put a user on the named plan.

        Opens a new subscription when forced, when the user has none active,
        or when the active one is on a different plan; otherwise returns the
        active subscription unchanged.
        """
        username = normalize_username(request.username)
        options = self.build_options(request.paid, request.periods, request.end_date)

        async with transaction():
            plan = await self.plan_repo.get_by_name(request.plan_name)
            if plan is None:
                raise NotFoundError(f"plan '{request.plan_name}' not found")

            user = await self._lock_user(username)
            now = self.clock()
            active = await self.subscription_repo.get_active_for_username(username, now)
            if request.force or active is None or active.plan_id != plan.id:
                return await self._open_subscription(user, plan, options, now)

            self.logger.info(
                f"User {username} already subscribed to {plan.name}",
                extra={"subscription_id": active.id},
            )
            return active

    @trace_span
    async def get_subscription_details(self, subscription_id: int) -> SubscriptionDetails:
        async with transaction():
            subscription = await self.subscription_repo.get(subscription_id)
            if subscription is None:
                raise NotFoundError(f"subscription {subscription_id} not found")

            user = await self.user_repo.get(subscription.user_id)
            plan = await self.plan_repo.get(subscription.plan_id)
            return SubscriptionDetails(
                id=subscription.id,
                effective_start_date=subscription.effective_start_date,
                effective_end_date=subscription.effective_end_date,
                paid=subscription.paid,
                user=user,
                plan=plan,
                quotas=await self.quota_repo.list_quotas(subscription.id),
                usages=await self.usage_repo.list_usages(subscription.id),
                addons=await self.subscription_addon_repo.list_for_subscription(
                    subscription.id
                ),
            )

    @trace_span
    async def get_user_summary(self, username: str) -> SubscriptionDetails:
        """Snapshot of the user's active subscription, opening one if needed."""
        async with transaction():
            subscription = await self.ensure_active_subscription(username)
            return await self.get_subscription_details(subscription.id)

    async def _lock_user(self, username: str) -> User:
        """Ensure the user exists and hold its row lock for the transaction."""
        await self.user_repo.ensure_user(username)
        return await self.user_repo.get_by_username(username, for_update=True)

    async def _open_subscription(
        self, user: User, plan: Plan, options: SubscriptionOptions, now: datetime
    ) -> Subscription:
        end_date = options.end_date or add_years(now, options.periods)
        created = await self.subscription_repo.create(
            SubscriptionCreateModel(
                user_id=user.id,
                plan_id=plan.id,
                effective_start_date=now,
                effective_end_date=end_date,
                paid=options.paid,
                created_by=self.system_username,
                last_modified_by=self.system_username,
            )
        )

        defaults = plan.current_quota_defaults(now)
        for default in defaults:
            await self.quota_repo.upsert_quota(
                default.quota_value,
                default.resource_type.id,
                created.id,
                self.system_username,
            )

        self.logger.info(
            f"Opened subscription {created.id} for {user.username} on plan {plan.name}",
            extra={
                "subscription_id": created.id,
                "user_id": user.id,
                "plan_id": plan.id,
                "seeded_quotas": len(defaults),
            },
        )
        return await self.subscription_repo.get(created.id)
