"""Create users, subscriptions and usage_tracking tables

Revision ID: 001
Revises: None
Create Date: 2024-06-01 00:00:00.000000+00:00

users:           local mirror of Supabase Auth accounts
subscriptions:   one row per user (user_id UNIQUE for ON CONFLICT upserts)
usage_tracking:  monthly analysis counters; (user_id, month) indexed, not unique

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), nullable=False, comment="Auth provider user id"),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("paypal_subscription_id", sa.String(64), nullable=True),
        sa.Column("paypal_plan_id", sa.String(64), nullable=True),
        sa.Column(
            "monthly_limit",
            sa.Integer(),
            nullable=False,
            comment="Analyses per calendar month; -1 means unlimited",
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_subscriptions"),
        sa.UniqueConstraint("user_id", name="uq_subscriptions_user_id"),
        sa.CheckConstraint("tier IN ('basic', 'pro', 'premium')", name="valid_tier"),
        sa.CheckConstraint(
            "status IN ('active', 'cancelled', 'expired', 'suspended')",
            name="valid_status",
        ),
    )
    op.create_index(
        "ix_subscriptions_paypal_subscription_id",
        "subscriptions",
        ["paypal_subscription_id"],
    )

    op.create_table(
        "usage_tracking",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("month", sa.String(7), nullable=False, comment="UTC calendar month, YYYY-MM"),
        sa.Column("analyses_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_usage_tracking"),
    )
    op.create_index("idx_usage_tracking_user_month", "usage_tracking", ["user_id", "month"])


def downgrade() -> None:
    op.drop_index("idx_usage_tracking_user_month", table_name="usage_tracking")
    op.drop_table("usage_tracking")
    op.drop_index("ix_subscriptions_paypal_subscription_id", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
