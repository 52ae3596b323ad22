"""
Tests for PayPalClient
=======================

How:  httpx.MockTransport routes requests to an in-test handler, so the real
      client code (auth, paths, error mapping) runs without a network.

Test Strategy:
    ✅ OAuth token is fetched once and reused until near expiry
    ✅ Subscription details / cancel hit the right paths with the bearer token
    ✅ Webhook verification returns True only on SUCCESS
    ✅ parse_provider_time handles "Z" and returns aware UTC
    ❌ Non-2xx and transport errors raise PaymentProviderError
    ❌ Missing signature headers → False without calling PayPal
"""

import json
from datetime import datetime, timezone

import httpx
import pytest

from app.exceptions import PaymentProviderError
from app.services.paypal_client import PayPalClient, parse_provider_time

SIGNATURE_HEADERS = {
    "paypal-transmission-id": "tid",
    "paypal-transmission-time": "2026-03-15T12:00:00Z",
    "paypal-cert-url": "https://api.paypal.com/cert",
    "paypal-auth-algo": "SHA256withRSA",
    "paypal-transmission-sig": "sig",
}


class Recorder:
    """MockTransport handler with canned responses per (method, path)."""

    def __init__(self):
        self.requests = []
        self.routes = {
            ("POST", "/v1/oauth2/token"): httpx.Response(200, json={"access_token": "tok", "expires_in": 3600}),
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"message": "not found"})
        return response

    def paths(self):
        return [r.url.path for r in self.requests]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(recorder, clock):
    return PayPalClient(
        "client-id",
        "secret",
        "https://api-m.sandbox.paypal.com",
        transport=httpx.MockTransport(recorder),
        clock=clock,
    )


class TestParseProviderTime:
    def test_zulu_suffix(self):
        assert parse_provider_time("2026-04-01T10:00:00Z") == datetime(2026, 4, 1, 10, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        parsed = parse_provider_time("2026-04-01T12:00:00+02:00")
        assert parsed == datetime(2026, 4, 1, 10, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "next tuesday"])
    def test_missing_or_garbage(self, value):
        assert parse_provider_time(value) is None


class TestPayPalClient:
    @pytest.mark.asyncio
    async def test_token_is_cached(self, client, recorder):
        recorder.routes[("GET", "/v1/billing/subscriptions/I-1")] = httpx.Response(200, json={"id": "I-1"})

        await client.get_subscription_details("I-1")
        await client.get_subscription_details("I-1")

        assert recorder.paths().count("/v1/oauth2/token") == 1
        assert recorder.requests[-1].headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_token_refreshed_near_expiry(self, client, recorder, clock):
        await client.get_access_token()
        clock.now = 3600 - 60
        await client.get_access_token()
        assert recorder.paths().count("/v1/oauth2/token") == 2

    @pytest.mark.asyncio
    async def test_token_request_uses_basic_auth(self, client, recorder):
        await client.get_access_token()
        token_request = recorder.requests[0]
        assert token_request.headers["Authorization"].startswith("Basic ")
        assert b"grant_type=client_credentials" in token_request.content

    @pytest.mark.asyncio
    async def test_cancel_posts_reason(self, client, recorder):
        recorder.routes[("POST", "/v1/billing/subscriptions/I-1/cancel")] = httpx.Response(204)

        await client.cancel_subscription("I-1", "moving on")

        cancel = recorder.requests[-1]
        assert json.loads(cancel.content) == {"reason": "moving on"}

    @pytest.mark.asyncio
    async def test_error_status_raises(self, client, recorder):
        recorder.routes[("POST", "/v1/billing/subscriptions/I-1/cancel")] = httpx.Response(
            422, json={"message": "Subscription is already cancelled"}
        )
        with pytest.raises(PaymentProviderError) as exc_info:
            await client.cancel_subscription("I-1")
        assert exc_info.value.status == 422
        assert "already cancelled" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, clock):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        client = PayPalClient("id", "secret", "https://paypal.test", transport=httpx.MockTransport(boom), clock=clock)
        with pytest.raises(PaymentProviderError, match="Could not reach"):
            await client.get_access_token()

    @pytest.mark.asyncio
    async def test_missing_access_token_raises(self, client, recorder):
        recorder.routes[("POST", "/v1/oauth2/token")] = httpx.Response(200, json={})
        with pytest.raises(PaymentProviderError, match="no access token"):
            await client.get_access_token()

    # ── Webhook verification ─────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_verify_success(self, client, recorder):
        recorder.routes[("POST", "/v1/notifications/verify-webhook-signature")] = httpx.Response(
            200, json={"verification_status": "SUCCESS"}
        )
        event = {"id": "WH-1", "event_type": "BILLING.SUBSCRIPTION.CANCELLED"}

        assert await client.verify_webhook_signature("WH-ID", SIGNATURE_HEADERS, event) is True

        body = json.loads(recorder.requests[-1].content)
        assert body["webhook_id"] == "WH-ID"
        assert body["webhook_event"] == event
        assert body["transmission_sig"] == "sig"

    @pytest.mark.asyncio
    async def test_verify_failure(self, client, recorder):
        recorder.routes[("POST", "/v1/notifications/verify-webhook-signature")] = httpx.Response(
            200, json={"verification_status": "FAILURE"}
        )
        assert await client.verify_webhook_signature("WH-ID", SIGNATURE_HEADERS, {}) is False

    @pytest.mark.asyncio
    async def test_missing_headers_skip_the_call(self, client, recorder):
        headers = dict(SIGNATURE_HEADERS)
        del headers["paypal-transmission-sig"]
        assert await client.verify_webhook_signature("WH-ID", headers, {}) is False
        assert recorder.requests == []
