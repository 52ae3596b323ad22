"""
SubText Backend — Subscription SQLAlchemy Model
=================================================

What:  One row per user describing their paid plan.
Why:   Gates the OCR endpoint (active + not expired) and sets the monthly limit.
How:   user_id is UNIQUE so every write can be a single INSERT ... ON CONFLICT
       (user_id) DO UPDATE. Webhooks locate rows by paypal_subscription_id.

Status values:
    active     → usable while expires_at is in the future
    cancelled  → user or provider cancelled
    suspended  → provider suspended billing
    expired    → provider reported the end of the agreement

monthly_limit uses -1 as the "unlimited" sentinel (premium tier).
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

SUBSCRIPTION_STATUSES = ("active", "cancelled", "suspended", "expired")
UNLIMITED = -1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subscription(Base):
    """Local subscription state, reconciled with PayPal by the lifecycle manager."""

    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Auth provider user id; one subscription per user",
    )

    tier: Mapped[str] = mapped_column(String(20), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        comment="active, cancelled, suspended, expired",
    )

    paypal_subscription_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )

    paypal_plan_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    monthly_limit: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Analyses per calendar month; -1 means unlimited",
    )

    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(user_id={self.user_id}, tier='{self.tier}', "
            f"status='{self.status}')>"
        )
