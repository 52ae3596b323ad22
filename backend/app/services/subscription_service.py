"""
SubText Backend — Subscription Service
========================================

What:  Reads and writes local subscription rows, and confirms or cancels
       checkouts against PayPal.
Why:   The OCR gate (is_subscribed), the usage limit and the lifecycle
       manager all need one consistent view of a user's plan.
How:   Each operation opens its own session from the injected factory.
       Writes to a user's row are a single INSERT ... ON CONFLICT (user_id)
       DO UPDATE so concurrent webhook and checkout writes cannot interleave
       a read-modify-write.

Plan catalogue:
    basic    $4.99   25 analyses / month
    pro      $9.99   100 analyses / month
    premium  $19.99  unlimited (monthly_limit = -1)
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import (
    NotFoundError,
    PaymentProviderError,
    PersistenceError,
    ValidationError,
)
from app.models.subscription import UNLIMITED, Subscription
from app.services.paypal_client import PayPalClient, parse_provider_time

logger = logging.getLogger(__name__)

CHECKOUT_VALID_STATUSES = ("ACTIVE", "APPROVED")
DEFAULT_BILLING_PERIOD = timedelta(days=30)

BASE_FEATURES = [
    "AI-powered conversation analysis",
    "Hidden intent detection",
    "Manipulation tactics identification",
    "Strategic reply suggestions",
]


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    price: str
    limit: int
    description: str
    features: List[str] = field(default_factory=list)


PLANS: Dict[str, Plan] = {
    "basic": Plan(
        id="basic",
        name="Basic Plan",
        price="4.99",
        limit=25,
        description="25 conversation analyses per month",
        features=BASE_FEATURES + ["25 analyses per month", "Email support"],
    ),
    "pro": Plan(
        id="pro",
        name="Pro Plan",
        price="9.99",
        limit=100,
        description="100 conversation analyses per month",
        features=BASE_FEATURES + [
            "100 analyses per month",
            "Priority email support",
            "Analysis history",
        ],
    ),
    "premium": Plan(
        id="premium",
        name="Premium Plan",
        price="19.99",
        limit=UNLIMITED,
        description="Unlimited conversation analyses",
        features=BASE_FEATURES + [
            "Unlimited analyses",
            "Priority support",
            "Analysis history",
            "Advanced insights",
            "Export to PDF",
        ],
    ),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SubscriptionService:
    """
    Args:
        session_factory: async_sessionmaker bound to the application engine.
        paypal: PayPal client, required only for checkout confirm / cancel.
        plan_ids: Mapping of PayPal plan id → tier, used to classify webhook
                  activations. Unknown plan ids fall back to "basic".
        now: Clock returning an aware UTC datetime (injectable for tests).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        paypal: Optional[PayPalClient] = None,
        plan_ids: Optional[Dict[str, str]] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.paypal = paypal
        self.plan_ids = {k: v for k, v in (plan_ids or {}).items() if k}
        self.now = now

    # ── Catalogue ─────────────────────────────────────────────────────────

    @staticmethod
    def list_plans() -> List[Plan]:
        return list(PLANS.values())

    def tier_for_plan_id(self, plan_id: Optional[str]) -> str:
        return self.plan_ids.get(plan_id or "", "basic")

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_active_subscription(self, user_id: str) -> Optional[Subscription]:
        """The user's row if its status is active (expiry not checked)."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Subscription).where(
                        Subscription.user_id == user_id,
                        Subscription.status == "active",
                    )
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to load subscription for user %s: %s", user_id, str(e))
            raise PersistenceError(context={"user_id": user_id, "operation": "get_active"}) from e

    async def is_subscribed(self, user_id: str) -> bool:
        """Active row whose expires_at is strictly in the future."""
        subscription = await self.get_active_subscription(user_id)
        if subscription is None:
            return False
        expires_at = as_utc(subscription.expires_at)
        return expires_at is not None and expires_at > self.now()

    async def find_by_paypal_id(self, paypal_subscription_id: str) -> Optional[Subscription]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Subscription).where(
                        Subscription.paypal_subscription_id == paypal_subscription_id
                    )
                )
                return result.scalars().first()
        except SQLAlchemyError as e:
            raise PersistenceError(
                context={"paypal_subscription_id": paypal_subscription_id, "operation": "find"}
            ) from e

    # ── Writes ────────────────────────────────────────────────────────────

    def _insert(self, session: AsyncSession):
        if session.bind.dialect.name == "sqlite":
            return sqlite_insert(Subscription)
        return pg_insert(Subscription)

    async def upsert_subscription(
        self,
        user_id: str,
        tier: str,
        status: str = "active",
        paypal_subscription_id: Optional[str] = None,
        paypal_plan_id: Optional[str] = None,
        monthly_limit: Optional[int] = None,
        expires_at: Optional[datetime] = None,
    ) -> Subscription:
        """Create or replace the user's subscription in one conditional write."""
        if monthly_limit is None:
            monthly_limit = PLANS[tier].limit
        now = self.now()
        values = {
            "tier": tier,
            "status": status,
            "paypal_subscription_id": paypal_subscription_id,
            "paypal_plan_id": paypal_plan_id,
            "monthly_limit": monthly_limit,
            "expires_at": expires_at,
            "updated_at": now,
        }
        try:
            async with self.session_factory() as session:
                stmt = self._insert(session).values(
                    id=uuid.uuid4(), user_id=user_id, created_at=now, **values
                )
                stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_=values)
                await session.execute(stmt)
                await session.commit()

                result = await session.execute(
                    select(Subscription)
                    .where(Subscription.user_id == user_id)
                    .execution_options(populate_existing=True)
                )
                subscription = result.scalar_one()
        except SQLAlchemyError as e:
            logger.error("Failed to upsert subscription for user %s: %s", user_id, str(e))
            raise PersistenceError(
                message="Failed to save subscription. Please contact support.",
                context={"user_id": user_id, "operation": "upsert"},
            ) from e

        logger.info("Subscription for user %s set to %s/%s", user_id, tier, status)
        return subscription

    async def update_by_paypal_id(
        self,
        paypal_subscription_id: str,
        status: str,
        expires_at: Optional[datetime] = None,
    ) -> int:
        """Set status (and optionally expiry) on rows with this PayPal id. Returns rows touched."""
        values: Dict[str, Any] = {"status": status, "updated_at": self.now()}
        if expires_at is not None:
            values["expires_at"] = expires_at
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(Subscription)
                    .where(Subscription.paypal_subscription_id == paypal_subscription_id)
                    .values(**values)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(
                context={"paypal_subscription_id": paypal_subscription_id, "operation": "update"}
            ) from e
        return result.rowcount

    async def cancel_for_user(self, user_id: str) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(Subscription)
                    .where(Subscription.user_id == user_id)
                    .values(status="cancelled", updated_at=self.now())
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(context={"user_id": user_id, "operation": "cancel"}) from e

    # ── Checkout flows ────────────────────────────────────────────────────

    def _require_paypal(self) -> PayPalClient:
        if self.paypal is None:
            raise PaymentProviderError(message="Payment provider is not configured")
        return self.paypal

    async def create_from_checkout(
        self, user_id: str, subscription_id: Optional[str], tier: Optional[str]
    ) -> Subscription:
        """
        Confirm a PayPal checkout and record the subscription locally.

        Raises:
            ValidationError (400): missing id, unknown tier, PayPal could not
                verify the id, or PayPal status is not ACTIVE/APPROVED.
            PersistenceError (500): the local write failed.
        """
        if not subscription_id:
            raise ValidationError("PayPal subscription ID is required", field="subscriptionId")
        if not tier or tier not in PLANS:
            raise ValidationError(
                "Tier must be one of: basic, pro, premium",
                field="tier",
                context={"allowed": list(PLANS)},
            )

        paypal = self._require_paypal()
        try:
            details = await paypal.get_subscription_details(subscription_id)
        except PaymentProviderError as e:
            raise ValidationError(
                e.message or "Could not verify subscription with PayPal",
                field="subscriptionId",
            ) from e

        provider_status = details.get("status")
        if provider_status not in CHECKOUT_VALID_STATUSES:
            raise ValidationError(
                f"Subscription status is {provider_status}. Expected ACTIVE or APPROVED.",
                field="subscriptionId",
            )

        billing_info = details.get("billing_info") or {}
        expires_at = parse_provider_time(billing_info.get("next_billing_time"))
        if expires_at is None:
            expires_at = self.now() + DEFAULT_BILLING_PERIOD

        return await self.upsert_subscription(
            user_id,
            tier=tier,
            status="active",
            paypal_subscription_id=subscription_id,
            paypal_plan_id=details.get("plan_id"),
            monthly_limit=PLANS[tier].limit,
            expires_at=expires_at,
        )

    async def cancel_checkout(
        self, user_id: str, reason: Optional[str] = None
    ) -> None:
        """
        Cancel the user's active subscription at PayPal, then locally.

        Raises:
            NotFoundError (404): no active subscription.
            ValidationError (400): the row has no PayPal subscription id.
            PaymentProviderError (500): PayPal refused the cancellation.
        """
        subscription = await self.get_active_subscription(user_id)
        if subscription is None:
            raise NotFoundError(
                resource="subscription",
                message="You do not have an active subscription",
            )
        if not subscription.paypal_subscription_id:
            raise ValidationError("No PayPal subscription ID found", field="subscription")

        await self._require_paypal().cancel_subscription(
            subscription.paypal_subscription_id,
            reason or "User requested cancellation",
        )
        await self.cancel_for_user(user_id)
        logger.info("User %s cancelled subscription %s", user_id, subscription.paypal_subscription_id)
