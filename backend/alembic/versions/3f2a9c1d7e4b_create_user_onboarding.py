"""create user_onboarding

Revision ID: 3f2a9c1d7e4b
Revises:
Create Date: 2026-10-19 09:12:40.118302

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7e4b"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the per-user onboarding record with its billing mirror."""
    op.create_table(
        "user_onboarding",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("clerk_user_id", sa.String(length=255), nullable=False),
        sa.Column("current_step", sa.String(length=32), nullable=False, server_default="not_started"),
        sa.Column("onboarding_complete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("industry", sa.String(length=255), nullable=True),
        sa.Column("company_size", sa.String(length=50), nullable=True),
        sa.Column("role", sa.String(length=255), nullable=True),
        sa.Column("goals", sa.JSON(), nullable=True),
        sa.Column("referral_source", sa.String(length=255), nullable=True),
        sa.Column("billing_customer_id", sa.String(length=255), nullable=True),
        sa.Column("subscription_id", sa.String(length=255), nullable=True),
        sa.Column("subscription_status", sa.String(length=50), nullable=True),
        sa.Column("subscription_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_cancel_at_period_end", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("subscription_event_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payment_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_onboarding_clerk_user_id", "user_onboarding", ["clerk_user_id"], unique=True)
    op.create_index("ix_user_onboarding_billing_customer_id", "user_onboarding", ["billing_customer_id"], unique=True)


def downgrade() -> None:
    """Drop the onboarding table."""
    op.drop_index("ix_user_onboarding_billing_customer_id", table_name="user_onboarding")
    op.drop_index("ix_user_onboarding_clerk_user_id", table_name="user_onboarding")
    op.drop_table("user_onboarding")
