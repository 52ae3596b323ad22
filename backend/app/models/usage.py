"""
SubText Backend — Usage Tracking SQLAlchemy Model
===================================================

What:  Monthly analysis counter per user.
How:   month is the UTC calendar month as "YYYY-MM". Rows are created lazily
       on first read and never deleted; analyses_count only grows.

There is deliberately no unique constraint on (user_id, month): the
get-or-create in UsageService is not atomic, so two concurrent first
requests can create two rows. Readers always pick the oldest row.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsageRecord(Base):
    __tablename__ = "usage_tracking"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    month: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        comment="UTC calendar month, YYYY-MM",
    )

    analyses_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

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

    __table_args__ = (
        Index("idx_usage_tracking_user_month", "user_id", "month"),
    )

    def __repr__(self) -> str:
        return (
            f"<UsageRecord(user_id={self.user_id}, month='{self.month}', "
            f"count={self.analyses_count})>"
        )
