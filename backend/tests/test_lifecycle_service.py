"""
Tests for SubscriptionLifecycleManager
=======================================

What:  PayPal webhook events applied to local subscription rows.
How:   Real SubscriptionService on SQLite, FakePayPal for subscription details.

Test Strategy:
    ✅ Activation upserts tier (from plan id), limit and expiry
    ✅ Replaying an event leaves the same state
    ✅ CANCELLED / SUSPENDED / EXPIRED set the status
    ✅ RENEWED and PAYMENT.SALE.COMPLETED reactivate with the new expiry
    ✅ Unknown and PAYMENT.FAILED events change nothing
    ❌ Activation for an unknown PayPal id is skipped
    ❌ Handler failures are logged and never raised
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from app.models.subscription import UNLIMITED
from app.services.lifecycle_service import SubscriptionLifecycleManager
from app.services.subscription_service import SubscriptionService, as_utc
from tests.conftest import FakePayPal

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def paypal():
    return FakePayPal()


@pytest.fixture
def subscriptions(session_factory, paypal):
    return SubscriptionService(
        session_factory,
        paypal=paypal,
        plan_ids={"P-BASIC": "basic", "P-PRO": "pro", "P-PREMIUM": "premium"},
        now=lambda: NOW,
    )


@pytest.fixture
def manager(subscriptions, paypal):
    return SubscriptionLifecycleManager(subscriptions, paypal)


def event(event_type, resource):
    return {"id": "WH-1", "event_type": event_type, "resource": resource}


async def _seed(subscriptions, user_id="u1", paypal_id="I-1", tier="basic"):
    return await subscriptions.upsert_subscription(
        user_id,
        tier=tier,
        paypal_subscription_id=paypal_id,
        expires_at=NOW + timedelta(days=10),
    )


class TestActivation:
    @pytest.mark.asyncio
    async def test_activation_sets_tier_from_plan(self, manager, subscriptions, paypal):
        await _seed(subscriptions)
        paypal.add_subscription("I-1", plan_id="P-PREMIUM", next_billing_time="2026-04-20T00:00:00Z")

        await manager.handle_event(event("BILLING.SUBSCRIPTION.ACTIVATED", {"id": "I-1"}))

        row = await subscriptions.get_active_subscription("u1")
        assert row.tier == "premium"
        assert row.monthly_limit == UNLIMITED
        assert row.paypal_plan_id == "P-PREMIUM"
        assert as_utc(row.expires_at) == datetime(2026, 4, 20, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_replay_is_idempotent(self, manager, subscriptions, paypal):
        await _seed(subscriptions)
        paypal.add_subscription("I-1", plan_id="P-PRO", next_billing_time="2026-04-20T00:00:00Z")
        activated = event("BILLING.SUBSCRIPTION.ACTIVATED", {"id": "I-1"})

        await manager.handle_event(activated)
        first = await subscriptions.get_active_subscription("u1")
        await manager.handle_event(activated)
        second = await subscriptions.get_active_subscription("u1")

        assert (first.tier, first.status, first.monthly_limit, first.expires_at) == (
            second.tier, second.status, second.monthly_limit, second.expires_at
        )

    @pytest.mark.asyncio
    async def test_unknown_plan_defaults_to_basic(self, manager, subscriptions, paypal):
        await _seed(subscriptions, tier="pro")
        paypal.add_subscription("I-1", plan_id="P-SOMETHING-ELSE")
        await manager.handle_event(event("BILLING.SUBSCRIPTION.ACTIVATED", {"id": "I-1"}))
        assert (await subscriptions.get_active_subscription("u1")).tier == "basic"

    @pytest.mark.asyncio
    async def test_activation_without_local_row_is_skipped(self, manager, subscriptions, paypal):
        paypal.add_subscription("I-NEW", plan_id="P-PRO")
        await manager.handle_event(event("BILLING.SUBSCRIPTION.ACTIVATED", {"id": "I-NEW"}))
        assert await subscriptions.find_by_paypal_id("I-NEW") is None


class TestStatusEvents:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("event_type, status", [
        ("BILLING.SUBSCRIPTION.CANCELLED", "cancelled"),
        ("BILLING.SUBSCRIPTION.SUSPENDED", "suspended"),
        ("BILLING.SUBSCRIPTION.EXPIRED", "expired"),
    ])
    async def test_status_is_applied(self, manager, subscriptions, event_type, status):
        await _seed(subscriptions)

        await manager.handle_event(event(event_type, {"id": "I-1"}))
        await manager.handle_event(event(event_type, {"id": "I-1"}))

        row = await subscriptions.find_by_paypal_id("I-1")
        assert row.status == status
        assert await subscriptions.is_subscribed("u1") is False

    @pytest.mark.asyncio
    async def test_payment_failed_changes_nothing(self, manager, subscriptions):
        await _seed(subscriptions)
        await manager.handle_event(event("BILLING.SUBSCRIPTION.PAYMENT.FAILED", {"id": "I-1"}))
        assert (await subscriptions.find_by_paypal_id("I-1")).status == "active"

    @pytest.mark.asyncio
    async def test_unknown_event_changes_nothing(self, manager, subscriptions):
        await _seed(subscriptions)
        await manager.handle_event(event("CUSTOMER.DISPUTE.CREATED", {"id": "I-1"}))
        assert (await subscriptions.find_by_paypal_id("I-1")).status == "active"


class TestRenewal:
    @pytest.mark.asyncio
    async def test_renewed_reactivates_with_new_expiry(self, manager, subscriptions, paypal):
        await _seed(subscriptions)
        await subscriptions.update_by_paypal_id("I-1", "suspended")
        paypal.add_subscription("I-1", next_billing_time="2026-05-01T00:00:00Z")

        await manager.handle_event(event("BILLING.SUBSCRIPTION.RENEWED", {"id": "I-1"}))

        row = await subscriptions.find_by_paypal_id("I-1")
        assert row.status == "active"
        assert as_utc(row.expires_at) == datetime(2026, 5, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_sale_completed_uses_billing_agreement_id(self, manager, subscriptions, paypal):
        await _seed(subscriptions)
        paypal.add_subscription("I-1", next_billing_time="2026-05-01T00:00:00Z")

        await manager.handle_event(
            event("PAYMENT.SALE.COMPLETED", {"id": "SALE-9", "billing_agreement_id": "I-1"})
        )

        row = await subscriptions.find_by_paypal_id("I-1")
        assert as_utc(row.expires_at) == datetime(2026, 5, 1, tzinfo=timezone.utc)


class TestFailures:
    @pytest.mark.asyncio
    async def test_provider_failure_is_swallowed(self, manager, subscriptions, caplog):
        """Details lookup fails (unknown id at PayPal); the handler logs and returns."""
        await _seed(subscriptions)
        with caplog.at_level(logging.ERROR, logger="app.services.lifecycle_service"):
            await manager.handle_event(event("BILLING.SUBSCRIPTION.RENEWED", {"id": "I-1"}))

        assert "Error handling PayPal event" in caplog.text
        assert (await subscriptions.find_by_paypal_id("I-1")).status == "active"

    @pytest.mark.asyncio
    async def test_event_without_resource(self, manager):
        await manager.handle_event({"event_type": "BILLING.SUBSCRIPTION.CANCELLED"})

    @pytest.mark.parametrize("resource", ["I-1", ["I-1"], 42, None])
    @pytest.mark.asyncio
    async def test_non_object_resource_is_ignored(self, manager, subscriptions, resource):
        await _seed(subscriptions)
        await manager.handle_event(event("BILLING.SUBSCRIPTION.CANCELLED", resource))
        assert (await subscriptions.find_by_paypal_id("I-1")).status == "active"

    def test_subscription_id_for_non_object_resource(self):
        assert SubscriptionLifecycleManager.subscription_id_for(
            event("PAYMENT.SALE.COMPLETED", "I-1")
        ) is None
