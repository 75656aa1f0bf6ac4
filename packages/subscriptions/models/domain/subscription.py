"""
Domain models for subscriptions.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from common.core.clock import UtcDateTime
from packages.catalog.models.domain.plan import Plan
from packages.subscriptions.models.domain.ledger import Quota, Usage
from packages.subscriptions.models.domain.subscription_addon import SubscriptionAddon
from packages.users.models.domain.user import User


class Subscription(BaseModel):
    """
    A user's subscription to a plan.

    Active while now is in [effective_start_date, effective_end_date); an
    unset end date means open-ended.
    """

    id: int
    user_id: int
    plan_id: int
    effective_start_date: UtcDateTime
    effective_end_date: Optional[UtcDateTime] = None
    paid: bool = True
    created_by: str
    last_modified_by: str

    class Config:
        from_attributes = True


class SubscriptionCreateModel(BaseModel):
    user_id: int
    plan_id: int
    effective_start_date: datetime
    effective_end_date: Optional[datetime] = None
    paid: bool = True
    created_by: str
    last_modified_by: str


class SubscriptionOptions(BaseModel):
    """
    How a new subscription is opened. periods counts years and only applies
    when end_date is not given.
    """

    paid: bool = True
    periods: int = 1
    end_date: Optional[UtcDateTime] = None


class SubscribeRequest(BaseModel):
    """
    Subscribe a user to a named plan.

    A new subscription is opened when force is set, when the user has no
    active subscription, or when the active one is on another plan.
    """

    username: str
    plan_name: str
    paid: bool = True
    periods: Optional[int] = None
    end_date: Optional[UtcDateTime] = None
    force: bool = False


class SubscriptionDetails(BaseModel):
    """Full snapshot of a subscription with its plan and ledgers."""

    id: int
    effective_start_date: UtcDateTime
    effective_end_date: Optional[UtcDateTime] = None
    paid: bool
    user: User
    plan: Plan
    quotas: List[Quota] = []
    usages: List[Usage] = []
    addons: List[SubscriptionAddon] = []
