"""Database models for subscriptions and their ledgers."""

from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.database.ledger import QuotaEntity, UsageEntity
from packages.subscriptions.models.database.subscription_addon import (
    SubscriptionAddonEntity,
)
from packages.subscriptions.models.database.update import UpdateEntity

__all__ = [
    "SubscriptionEntity",
    "QuotaEntity",
    "UsageEntity",
    "SubscriptionAddonEntity",
    "UpdateEntity",
]
