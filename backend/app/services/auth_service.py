"""
SubText Backend — Auth Service
================================

What:  Signup, login, logout, refresh, user lookup and bearer-token
       verification.
How:   Credentials and tokens go to Supabase Auth (SupabaseAuthClient); the
       profile (email, full name) is mirrored into the local `users` table
       keyed by the provider's user id.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    UpstreamUnavailableError,
    ValidationError,
)
from app.models.user import User
from app.services.supabase_auth import SupabaseAuthClient

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


@dataclass
class AuthenticatedUser:
    id: str
    email: Optional[str] = None


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    expires_at: Optional[int]

    @classmethod
    def from_provider(cls, payload: Dict[str, Any]) -> "AuthSession":
        # GoTrue returns the token fields at the top level of the grant response
        data = payload.get("session") or payload
        expires_at = data.get("expires_at")
        if expires_at is None and data.get("expires_in") is not None:
            expires_at = int(time.time()) + int(data["expires_in"])
        if not data.get("access_token"):
            raise AuthenticationError("Failed to refresh session")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            expires_at=expires_at,
        )


def validate_email(email: str) -> None:
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format", field="email")


class AuthService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider: SupabaseAuthClient,
    ):
        self.session_factory = session_factory
        self.provider = provider

    # ── Local user mirror ─────────────────────────────────────────────────

    async def get_user_by_email(self, email: str) -> Optional[User]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(User).where(User.email == email))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(context={"operation": "get_user_by_email"}) from e

    async def _insert_user(self, user_id: str, email: str, full_name: str) -> User:
        user = User(id=user_id, email=email, full_name=full_name)
        try:
            async with self.session_factory() as session:
                session.add(user)
                await session.commit()
        except IntegrityError as e:
            raise ConflictError("User already exists with this email") from e
        except SQLAlchemyError as e:
            logger.error("Failed to store user %s: %s", user_id, str(e))
            raise PersistenceError(context={"user_id": user_id, "operation": "insert_user"}) from e
        return user

    # ── Operations ────────────────────────────────────────────────────────

    async def verify_token(self, token: str) -> AuthenticatedUser:
        """Resolve a bearer token to the provider's user. Any failure is a 401."""
        if not token:
            raise AuthenticationError("No token provided")
        try:
            payload = await self.provider.get_user(token)
        except UpstreamUnavailableError as e:
            raise AuthenticationError("Authentication failed", context=e.context) from e
        user_id = payload.get("id")
        if not user_id:
            raise AuthenticationError("Invalid or expired token")
        return AuthenticatedUser(id=user_id, email=payload.get("email"))

    async def signup(self, email: Optional[str], password: Optional[str], full_name: Optional[str]) -> User:
        if not email or not password or not full_name:
            raise ValidationError("Missing required fields: email, password, fullName")
        validate_email(email)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                field="password",
            )

        if await self.get_user_by_email(email) is not None:
            raise ConflictError("User already exists with this email")

        provider_user = await self.provider.create_user(email, password, full_name)
        user = await self._insert_user(provider_user["id"], email, full_name)
        logger.info("Created user %s", user.id)
        return user

    async def login(self, email: Optional[str], password: Optional[str]):
        """Returns (User, AuthSession)."""
        if not email or not password:
            raise ValidationError("Missing required fields: email, password")
        validate_email(email)

        grant = await self.provider.sign_in_with_password(email, password)
        user = await self.get_user_by_email(email)
        if user is None:
            raise NotFoundError(resource="user", message="User not found")
        logger.info("User %s logged in", user.id)
        return user, AuthSession.from_provider(grant)

    async def logout(self, token: Optional[str]) -> None:
        if not token:
            raise AuthenticationError("No token provided")
        await self.provider.sign_out(token)

    async def refresh(self, refresh_token: Optional[str]) -> AuthSession:
        if not refresh_token:
            raise ValidationError("Missing required field: refreshToken", field="refreshToken")
        grant = await self.provider.refresh_session(refresh_token)
        return AuthSession.from_provider(grant)

    async def check_user(self, email: Optional[str]) -> Optional[User]:
        if not email:
            raise ValidationError("Email is required", field="email")
        return await self.get_user_by_email(email)
