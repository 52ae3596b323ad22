"""SubText Backend — Subscription Schemas"""

from datetime import datetime
from typing import List, Optional, Union

from app.schemas.common import CamelModel


class PlanOut(CamelModel):
    id: str
    name: str
    price: str
    limit: int
    description: str
    features: List[str]


class PlansResponse(CamelModel):
    success: bool = True
    plans: List[PlanOut]


class SubscriptionSummary(CamelModel):
    tier: str
    expires_at: Optional[datetime] = None
    monthly_limit: int


class UsageSummary(CamelModel):
    current: int
    # "unlimited" for premium plans
    limit: Union[int, str]
    remaining: Union[int, str]


class SubscriptionStatusResponse(CamelModel):
    has_subscription: bool
    subscription: Optional[SubscriptionSummary] = None
    usage: UsageSummary


class CreateSubscriptionRequest(CamelModel):
    subscription_id: Optional[str] = None
    tier: Optional[str] = None


class CancelSubscriptionRequest(CamelModel):
    reason: Optional[str] = None


class SubscriptionOut(CamelModel):
    tier: str
    status: str
    monthly_limit: int
    expires_at: Optional[datetime] = None


class CreateSubscriptionResponse(CamelModel):
    success: bool = True
    subscription: SubscriptionOut


class WebhookAck(CamelModel):
    received: bool = True
