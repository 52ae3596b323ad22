"""
SubText Backend — User SQLAlchemy Model
=========================================

What:  Local mirror of accounts created through Supabase Auth.
Why:   Login and check-user answer with the stored profile (email, full name)
       without asking the auth provider for it.
How:   The primary key IS the Supabase user id (a UUID rendered as text), so
       tokens verified by the provider map straight onto this row.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Auth provider user id",
    )

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        index=True,
    )

    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
