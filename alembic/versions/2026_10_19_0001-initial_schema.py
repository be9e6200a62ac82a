"""initial schema

Revision ID: 2026_10_19_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates:
- subscribers: account billing state (plan, status, period end)
- payments: one row per checkout attempt, keyed by the generated P24 session id
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_19_0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "subscribers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("subscription_plan", sa.String(length=20), nullable=True),
        sa.Column(
            "subscription_status",
            sa.String(length=20),
            nullable=False,
            server_default="trial",
        ),
        sa.Column("subscription_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_subscribers_email"),
    )
    op.create_index(
        "idx_subscribers_subscription_status", "subscribers", ["subscription_status"]
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subscriber_id", sa.Uuid(), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="PLN"),
        sa.Column("plan_type", sa.String(length=20), nullable=False),
        sa.Column("billing_period", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("p24_session_id", sa.String(length=100), nullable=False),
        sa.Column("p24_token", sa.String(length=255), nullable=True),
        sa.Column("p24_order_id", sa.String(length=64), nullable=True),
        sa.Column("failure_reason", sa.String(length=255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["subscriber_id"], ["subscribers.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("p24_session_id", name="uq_payments_p24_session_id"),
        sa.CheckConstraint("amount_minor > 0", name="ck_payment_amount_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'initialized', 'completed', 'failed')",
            name="ck_payment_status",
        ),
    )
    op.create_index("idx_payments_subscriber_id", "payments", ["subscriber_id"])
    op.create_index("idx_payments_status", "payments", ["status"])
    op.create_index("idx_payments_created_at", "payments", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_payments_created_at", table_name="payments")
    op.drop_index("idx_payments_status", table_name="payments")
    op.drop_index("idx_payments_subscriber_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("idx_subscribers_subscription_status", table_name="subscribers")
    op.drop_table("subscribers")
