from typing import Optional
from pydantic import BaseModel

from packages.catalog.models.domain.addon import Addon, AddonRate


class SubscriptionAddon(BaseModel):
    """An add-on attached to a subscription. amount may diverge from the add-on default."""

    id: int
    subscription_id: int
    addon: Addon
    addon_rate: Optional[AddonRate] = None
    amount: float
    paid: bool


class SubscriptionAddonCreateModel(BaseModel):
    subscription_id: int
    addon_id: int
    addon_rate_id: Optional[int] = None
    amount: float
    paid: bool


class SubscriptionAddonUpdateModel(BaseModel):
    """Only fields explicitly set are changed."""

    amount: Optional[float] = None
    paid: Optional[bool] = None
