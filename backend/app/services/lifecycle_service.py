"""
SubText Backend — Subscription Lifecycle Manager
==================================================

What:  Applies PayPal webhook events to local subscription rows.
Why:   PayPal is the source of truth for billing; renewals, suspensions and
       cancellations made outside the app must reach the OCR gate.
How:   Dispatch on event_type. Each handler is idempotent (replaying an
       event leaves the same state) and never raises: failures are logged
       and the webhook is still acknowledged, so PayPal does not redeliver
       forever.

Event mapping:
    BILLING.SUBSCRIPTION.ACTIVATED      fetch details, upsert (tier from plan id)
    BILLING.SUBSCRIPTION.CANCELLED      status → cancelled
    BILLING.SUBSCRIPTION.SUSPENDED      status → suspended
    BILLING.SUBSCRIPTION.EXPIRED        status → expired
    BILLING.SUBSCRIPTION.PAYMENT.FAILED logged only
    BILLING.SUBSCRIPTION.RENEWED        fetch details, status → active, new expiry
    PAYMENT.SALE.COMPLETED              same as RENEWED (id = billing_agreement_id)
"""

import logging
from typing import Any, Dict, Optional

from app.services.paypal_client import PayPalClient, parse_provider_time
from app.services.subscription_service import PLANS, SubscriptionService

logger = logging.getLogger(__name__)

ACTIVATED = "BILLING.SUBSCRIPTION.ACTIVATED"
CANCELLED = "BILLING.SUBSCRIPTION.CANCELLED"
SUSPENDED = "BILLING.SUBSCRIPTION.SUSPENDED"
EXPIRED = "BILLING.SUBSCRIPTION.EXPIRED"
PAYMENT_FAILED = "BILLING.SUBSCRIPTION.PAYMENT.FAILED"
RENEWED = "BILLING.SUBSCRIPTION.RENEWED"
SALE_COMPLETED = "PAYMENT.SALE.COMPLETED"

STATUS_EVENTS = {
    CANCELLED: "cancelled",
    SUSPENDED: "suspended",
    EXPIRED: "expired",
}


class SubscriptionLifecycleManager:
    def __init__(self, subscriptions: SubscriptionService, paypal: PayPalClient):
        self.subscriptions = subscriptions
        self.paypal = paypal

    @staticmethod
    def subscription_id_for(event: Dict[str, Any]) -> Optional[str]:
        resource = event.get("resource")
        if not isinstance(resource, dict):
            resource = {}
        if event.get("event_type") == SALE_COMPLETED:
            return resource.get("billing_agreement_id")
        return resource.get("id")

    async def handle_event(self, event: Dict[str, Any]) -> None:
        """Apply one webhook event. Never raises."""
        event_type = event.get("event_type")
        subscription_id = self.subscription_id_for(event)
        logger.info("PayPal webhook event %s for subscription %s", event_type, subscription_id)

        try:
            if event_type == ACTIVATED:
                await self._activated(subscription_id)
            elif event_type in STATUS_EVENTS:
                await self._set_status(subscription_id, STATUS_EVENTS[event_type])
            elif event_type == PAYMENT_FAILED:
                logger.warning("Payment failed for subscription %s", subscription_id)
            elif event_type in (RENEWED, SALE_COMPLETED):
                await self._renewed(subscription_id)
            else:
                logger.info("Unhandled PayPal event type: %s", event_type)
        except Exception:
            logger.exception(
                "Error handling PayPal event %s for subscription %s",
                event_type,
                subscription_id,
            )

    async def _activated(self, subscription_id: Optional[str]) -> None:
        if not subscription_id:
            logger.warning("Activation event without a subscription id")
            return
        details = await self.paypal.get_subscription_details(subscription_id)
        existing = await self.subscriptions.find_by_paypal_id(subscription_id)
        if existing is None:
            # Checkout confirmation creates the row; nothing to attach to yet
            logger.info("No local subscription for PayPal id %s, skipping activation", subscription_id)
            return

        tier = self.subscriptions.tier_for_plan_id(details.get("plan_id"))
        billing_info = details.get("billing_info") or {}
        await self.subscriptions.upsert_subscription(
            existing.user_id,
            tier=tier,
            status="active",
            paypal_subscription_id=subscription_id,
            paypal_plan_id=details.get("plan_id"),
            monthly_limit=PLANS[tier].limit,
            expires_at=parse_provider_time(billing_info.get("next_billing_time")),
        )
        logger.info("Subscription activated for user %s (%s)", existing.user_id, tier)

    async def _set_status(self, subscription_id: Optional[str], status: str) -> None:
        if not subscription_id:
            logger.warning("Status event (%s) without a subscription id", status)
            return
        updated = await self.subscriptions.update_by_paypal_id(subscription_id, status)
        logger.info("Subscription %s marked %s (%d rows)", subscription_id, status, updated)

    async def _renewed(self, subscription_id: Optional[str]) -> None:
        if not subscription_id:
            logger.warning("Renewal event without a subscription id")
            return
        details = await self.paypal.get_subscription_details(subscription_id)
        billing_info = details.get("billing_info") or {}
        await self.subscriptions.update_by_paypal_id(
            subscription_id,
            "active",
            expires_at=parse_provider_time(billing_info.get("next_billing_time")),
        )
        logger.info("Subscription %s renewed", subscription_id)
