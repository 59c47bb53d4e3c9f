"""add stripe ids to users

Revision ID: 2026_10_01_0001
Revises: 2026_10_01_0000
Create Date: 2026-10-01 10:00:00.000000

Adds the Stripe customer and subscription ids written by entitlement
reconciliation.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_01_0001"
down_revision: str | None = "2026_10_01_0000"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("users", sa.Column("stripe_customer_id", sa.String(length=255), nullable=True))
    op.add_column("users", sa.Column("stripe_subscription_id", sa.String(length=255), nullable=True))

    op.create_index(
        "idx_users_stripe_customer_id",
        "users",
        ["stripe_customer_id"],
        postgresql_where=sa.text("stripe_customer_id IS NOT NULL"),
    )
    op.create_index(
        "idx_users_stripe_subscription_id",
        "users",
        ["stripe_subscription_id"],
        postgresql_where=sa.text("stripe_subscription_id IS NOT NULL"),
    )


def downgrade() -> None:
    op.drop_index("idx_users_stripe_subscription_id", table_name="users")
    op.drop_index("idx_users_stripe_customer_id", table_name="users")
    op.drop_column("users", "stripe_subscription_id")
    op.drop_column("users", "stripe_customer_id")
