"""
SubText Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures and fakes for the test-suite.
How:   Store-backed services run against a throwaway SQLite file (aiosqlite)
       per test; the three external collaborators (LLM, Supabase Auth,
       PayPal) are replaced by in-memory fakes that count their calls.

Fixture Hierarchy (all function-scoped):
    ├── session_factory: async_sessionmaker over a fresh SQLite database
    ├── fake_llm / fake_auth / fake_paypal: call-counting doubles
    ├── container: ServiceContainer wired with the above
    ├── test_client: HTTPX AsyncClient over ASGITransport
    └── sample_image_bytes / auth_headers: request helpers
"""

import os

# Must be set before any app module reads settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["PAYPAL_WEBHOOK_ID"] = ""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.container import build_container
from app.database import Base, build_engine, build_session_factory
from app.exceptions import AuthenticationError, ConflictError, PaymentProviderError
from app.models import subscription as _subscription_model  # noqa: F401
from app.models import usage as _usage_model  # noqa: F401
from app.models import user as _user_model  # noqa: F401
from app.services.llm_base import LLMService
from app.services.subscription_service import SubscriptionService

USER_ID = "user-123"
USER_TOKEN = "token-user-123"


# ══════════════════════════════════════════════════════════════════════════
# Fakes
# ══════════════════════════════════════════════════════════════════════════

class FakeLLM(LLMService):
    """Returns canned text; set `error` to make the next calls fail."""

    def __init__(self, vision_text: str = "", analysis_text: str = ""):
        self.vision_text = vision_text
        self.analysis_text = analysis_text
        self.error: Optional[Exception] = None
        self.vision_calls: List[Dict[str, Any]] = []
        self.completion_calls: List[Dict[str, Any]] = []
        self.healthy = True

    async def read_image(self, prompt, image_bytes, mime_type, temperature=0.1, max_output_tokens=1500):
        self.vision_calls.append(
            {"prompt": prompt, "bytes": image_bytes, "mime_type": mime_type,
             "temperature": temperature, "max_output_tokens": max_output_tokens}
        )
        if self.error is not None:
            raise self.error
        return self.vision_text

    async def complete(self, system_prompt, user_prompt, temperature=0.8, max_output_tokens=250):
        self.completion_calls.append(
            {"system_prompt": system_prompt, "user_prompt": user_prompt,
             "temperature": temperature, "max_output_tokens": max_output_tokens}
        )
        if self.error is not None:
            raise self.error
        return self.analysis_text

    async def health_check(self) -> bool:
        return self.healthy


class FakeAuthProvider:
    """In-memory stand-in for SupabaseAuthClient."""

    def __init__(self):
        self.tokens: Dict[str, Dict[str, Any]] = {USER_TOKEN: {"id": USER_ID, "email": "user@example.com"}}
        self.passwords: Dict[str, str] = {}
        self.users_by_email: Dict[str, str] = {}
        self.refresh_tokens: Dict[str, str] = {}
        self.signed_out: List[str] = []
        self._counter = 0

    def _grant(self, user_id: str) -> Dict[str, Any]:
        self._counter += 1
        access = f"access-{user_id}-{self._counter}"
        refresh = f"refresh-{user_id}-{self._counter}"
        self.tokens[access] = {"id": user_id}
        self.refresh_tokens[refresh] = user_id
        return {"access_token": access, "refresh_token": refresh, "expires_at": 1_900_000_000}

    async def create_user(self, email, password, full_name):
        if email in self.users_by_email:
            raise ConflictError("User already exists with this email")
        user_id = f"uid-{len(self.users_by_email) + 1}"
        self.users_by_email[email] = user_id
        self.passwords[email] = password
        return {"id": user_id, "email": email}

    async def sign_in_with_password(self, email, password):
        if self.passwords.get(email) != password:
            raise AuthenticationError("Invalid email or password")
        return self._grant(self.users_by_email[email])

    async def refresh_session(self, refresh_token):
        user_id = self.refresh_tokens.pop(refresh_token, None)
        if user_id is None:
            raise AuthenticationError("Invalid or expired refresh token")
        return self._grant(user_id)

    async def get_user(self, access_token):
        user = self.tokens.get(access_token)
        if user is None:
            raise AuthenticationError("Invalid or expired token")
        return user

    async def sign_out(self, access_token):
        if access_token not in self.tokens:
            raise AuthenticationError("Invalid or expired token")
        self.signed_out.append(access_token)
        del self.tokens[access_token]

    async def aclose(self):
        pass


class FakePayPal:
    """In-memory stand-in for PayPalClient."""

    def __init__(self):
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.cancelled: List[tuple] = []
        self.detail_calls = 0
        self.signature_valid = True
        self.cancel_error: Optional[Exception] = None

    def add_subscription(self, subscription_id, status="ACTIVE", plan_id="P-BASIC", next_billing_time=None):
        self.subscriptions[subscription_id] = {
            "id": subscription_id,
            "status": status,
            "plan_id": plan_id,
            "billing_info": {"next_billing_time": next_billing_time} if next_billing_time else {},
        }

    async def get_subscription_details(self, subscription_id):
        self.detail_calls += 1
        if subscription_id not in self.subscriptions:
            raise PaymentProviderError(message="Subscription not found", status=404)
        return self.subscriptions[subscription_id]

    async def cancel_subscription(self, subscription_id, reason="User requested cancellation"):
        if self.cancel_error is not None:
            raise self.cancel_error
        self.cancelled.append((subscription_id, reason))

    async def verify_webhook_signature(self, webhook_id, headers, event):
        return self.signature_valid

    async def aclose(self):
        pass


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """A fresh SQLite database with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'subtext.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite+aiosqlite:///./unused.db",
        paypal_webhook_id="",
        paypal_basic_plan_id="P-BASIC",
        paypal_pro_plan_id="P-PRO",
        paypal_premium_plan_id="P-PREMIUM",
        rate_limit_requests=20,
        rate_limit_window=3600,
    )


@pytest.fixture
def fake_llm():
    return FakeLLM(
        vision_text="RECEIVED_MESSAGES_START\nhey\nare you free tonight?\nRECEIVED_MESSAGES_END",
        analysis_text="HIDDEN MEANING: ...\nBEHAVIOR: Testing\nSTRATEGIC REPLY: ...",
    )


@pytest.fixture
def fake_auth():
    return FakeAuthProvider()


@pytest.fixture
def fake_paypal():
    return FakePayPal()


@pytest_asyncio.fixture
async def container(test_settings, session_factory, fake_llm, fake_auth, fake_paypal):
    built = build_container(
        config=test_settings,
        session_factory=session_factory,
        llm=fake_llm,
        auth_provider=fake_auth,
        paypal=fake_paypal,
    )
    yield built
    await built.usage.wait_for_pending()


@pytest_asyncio.fixture
async def test_client(container):
    """HTTPX AsyncClient routed straight into a fresh app (no server, no lifespan)."""
    from app.main import create_app

    app = create_app(container)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {USER_TOKEN}"}


@pytest.fixture
def sample_image_bytes():
    """Minimal JPEG: SOI + JFIF header + EOI."""
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


async def subscribe(
    subscriptions: SubscriptionService,
    user_id: str = USER_ID,
    tier: str = "basic",
    days: int = 30,
    paypal_id: Optional[str] = "I-SUB-1",
):
    """Give a user an active subscription expiring `days` from now."""
    return await subscriptions.upsert_subscription(
        user_id,
        tier=tier,
        status="active",
        paypal_subscription_id=paypal_id,
        paypal_plan_id=f"P-{tier.upper()}",
        expires_at=datetime.now(timezone.utc) + timedelta(days=days),
    )
