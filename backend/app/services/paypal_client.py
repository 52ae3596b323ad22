"""
SubText Backend — PayPal REST Client
======================================

What:  Thin async wrapper over the PayPal Subscriptions and Notifications APIs.
Why:   Checkout confirmation, cancellation and webhook reconciliation all need
       authoritative subscription state from PayPal.
How:   httpx.AsyncClient with a bounded timeout. An OAuth client-credentials
       token is fetched on first use and reused until shortly before expiry.

Endpoints used:
    POST /v1/oauth2/token                                   (client credentials)
    GET  /v1/billing/subscriptions/{id}                     (details)
    POST /v1/billing/subscriptions/{id}/cancel              (204 on success)
    POST /v1/notifications/verify-webhook-signature         (SUCCESS / FAILURE)

Every non-2xx response and every transport error is raised as
PaymentProviderError. Nothing is retried.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from app.exceptions import PaymentProviderError

logger = logging.getLogger(__name__)

# Refresh the token this many seconds before PayPal says it expires
TOKEN_EXPIRY_MARGIN = 60

# Header names PayPal signs webhook deliveries with
WEBHOOK_SIGNATURE_HEADERS = {
    "transmission_id": "paypal-transmission-id",
    "transmission_time": "paypal-transmission-time",
    "cert_url": "paypal-cert-url",
    "auth_algo": "paypal-auth-algo",
    "transmission_sig": "paypal-transmission-sig",
}


def parse_provider_time(value: Optional[str]) -> Optional[datetime]:
    """Parse PayPal's RFC 3339 timestamps ("2024-02-01T10:00:00Z") into aware datetimes."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable PayPal timestamp: %s", value)
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class PayPalClient:
    """
    Args:
        client_id / client_secret: REST app credentials.
        base_url: https://api-m.paypal.com (live) or the sandbox host.
        timeout_seconds: Applied to every request.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self._clock = clock
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
        )
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Transport helpers ─────────────────────────────────────────────────

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("PayPal %s %s failed: %s", method, url, str(e))
            raise PaymentProviderError(
                message="Could not reach the payment provider",
                context={"url": url, "error_type": type(e).__name__},
            ) from e

        if response.is_error:
            detail = self._error_detail(response)
            logger.warning(
                "PayPal %s %s returned %d: %s", method, url, response.status_code, detail
            )
            raise PaymentProviderError(
                message=detail or f"Payment provider returned {response.status_code}",
                status=response.status_code,
                context={"url": url},
            )
        return response

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return ""
        if not isinstance(body, dict):
            return ""
        return str(body.get("message") or body.get("error_description") or body.get("error") or "")

    async def _authorized_headers(self) -> Dict[str, str]:
        token = await self.get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    # ── API operations ────────────────────────────────────────────────────

    async def get_access_token(self) -> str:
        if self._token and self._clock() < self._token_expires_at:
            return self._token

        response = await self._send(
            "POST",
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise PaymentProviderError(message="PayPal auth failed: no access token returned")

        expires_in = float(payload.get("expires_in", 0))
        self._token = token
        self._token_expires_at = self._clock() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
        return token

    async def get_subscription_details(self, subscription_id: str) -> Dict[str, Any]:
        response = await self._send(
            "GET",
            f"/v1/billing/subscriptions/{subscription_id}",
            headers=await self._authorized_headers(),
        )
        return response.json()

    async def cancel_subscription(
        self, subscription_id: str, reason: str = "User requested cancellation"
    ) -> None:
        await self._send(
            "POST",
            f"/v1/billing/subscriptions/{subscription_id}/cancel",
            headers=await self._authorized_headers(),
            json={"reason": reason},
        )
        logger.info("PayPal subscription %s cancelled", subscription_id)

    async def verify_webhook_signature(
        self,
        webhook_id: str,
        headers: Mapping[str, str],
        event: Dict[str, Any],
    ) -> bool:
        """
        Ask PayPal whether a webhook delivery is authentic.

        Returns False when signature headers are missing or PayPal answers
        anything other than SUCCESS. Transport / HTTP errors propagate as
        PaymentProviderError.
        """
        body: Dict[str, Any] = {"webhook_id": webhook_id, "webhook_event": event}
        for field, header in WEBHOOK_SIGNATURE_HEADERS.items():
            value = headers.get(header)
            if not value:
                logger.warning("Webhook delivery missing %s header", header)
                return False
            body[field] = value

        response = await self._send(
            "POST",
            "/v1/notifications/verify-webhook-signature",
            headers=await self._authorized_headers(),
            json=body,
        )
        return response.json().get("verification_status") == "SUCCESS"
