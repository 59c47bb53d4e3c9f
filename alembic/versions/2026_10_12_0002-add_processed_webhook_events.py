"""add processed_webhook_events

Revision ID: 2026_10_12_0002
Revises: 2026_10_01_0001
Create Date: 2026-10-12 00:00:00.000000

Ledger of Stripe event ids that were handled without failure, so redelivered
events are acknowledged without reprocessing.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_12_0002"
down_revision: str | None = "2026_10_01_0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "processed_webhook_events",
        sa.Column("event_id", sa.String(255), primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("outcome", sa.String(20), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint(
            "outcome IN ('applied', 'unresolved', 'skipped', 'ignored')",
            name="ck_processed_webhook_events_outcome",
        ),
    )
    op.create_index(
        "idx_processed_webhook_events_processed_at",
        "processed_webhook_events",
        ["processed_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_processed_webhook_events_processed_at", table_name="processed_webhook_events")
    op.drop_table("processed_webhook_events")
