"""
SubText Backend — Supabase Auth (GoTrue) Client
=================================================

What:  Async client for the handful of Supabase Auth endpoints the API uses.
Why:   Token issuance and verification are delegated entirely to Supabase;
       this service never sees or stores password hashes.
How:   httpx.AsyncClient against {SUPABASE_URL}/auth/v1. Public operations
       send the anon key; admin operations send the service-role key.

Error mapping:
    provider rejects credentials / token (400, 401, 403) → AuthenticationError
    provider reports the email is already registered     → ConflictError
    transport failure, timeout, any other status         → UpstreamUnavailableError
"""

import logging
from typing import Any, Dict, Optional

import httpx

from app.exceptions import AuthenticationError, ConflictError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

REJECTED_STATUSES = {400, 401, 403}


class SupabaseAuthClient:
    def __init__(
        self,
        url: str,
        anon_key: str,
        service_key: str,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.anon_key = anon_key
        self.service_key = service_key
        self._http = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/auth/v1",
            timeout=timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self, admin: bool = False, bearer: Optional[str] = None) -> Dict[str, str]:
        key = self.service_key if admin else self.anon_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {bearer or key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if not isinstance(body, dict):
            return str(body)
        return str(
            body.get("error_description")
            or body.get("msg")
            or body.get("message")
            or body.get("error")
            or ""
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Supabase %s %s failed: %s", method, url, str(e))
            raise UpstreamUnavailableError(
                message="Authentication service is unavailable",
                context={"url": url, "error_type": type(e).__name__},
            ) from e

    def _raise_for_status(self, response: httpx.Response, rejected_message: str) -> None:
        if response.is_success:
            return
        detail = self._message(response)
        if response.status_code in REJECTED_STATUSES:
            raise AuthenticationError(
                message=rejected_message,
                context={"provider_status": response.status_code, "provider_message": detail},
            )
        logger.error("Supabase returned %d: %s", response.status_code, detail)
        raise UpstreamUnavailableError(
            message="Authentication service error",
            context={"provider_status": response.status_code, "provider_message": detail},
        )

    # ── Operations ────────────────────────────────────────────────────────

    async def create_user(self, email: str, password: str, full_name: str) -> Dict[str, Any]:
        """Admin-create a confirmed user. Returns the provider's user object."""
        response = await self._send(
            "POST",
            "/admin/users",
            headers=self._headers(admin=True),
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {"full_name": full_name},
            },
        )
        if response.status_code in (409, 422) and "already" in self._message(response).lower():
            raise ConflictError("User already exists with this email")
        self._raise_for_status(response, "Could not create user")
        return response.json()

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        response = await self._send(
            "POST",
            "/token",
            params={"grant_type": "password"},
            headers=self._headers(),
            json={"email": email, "password": password},
        )
        self._raise_for_status(response, "Invalid email or password")
        return response.json()

    async def refresh_session(self, refresh_token: str) -> Dict[str, Any]:
        response = await self._send(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            headers=self._headers(),
            json={"refresh_token": refresh_token},
        )
        self._raise_for_status(response, "Invalid or expired refresh token")
        return response.json()

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        response = await self._send("GET", "/user", headers=self._headers(bearer=access_token))
        self._raise_for_status(response, "Invalid or expired token")
        return response.json()

    async def sign_out(self, access_token: str) -> None:
        response = await self._send(
            "POST",
            "/logout",
            headers=self._headers(admin=True, bearer=access_token),
        )
        self._raise_for_status(response, "Invalid or expired token")
