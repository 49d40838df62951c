"""009: buyer delivery codes, per-leg early payout flags, one open listing per quota

Revision ID: 009
Revises: 008
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op

revision: str = "009"
down_revision: Union[str, None] = "008"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        ALTER TABLE marketplace_orders
            ADD COLUMN delivery_confirmation_code VARCHAR(10),
            ADD COLUMN courier_released           BOOLEAN NOT NULL DEFAULT FALSE;
    """)
    # A quota can back at most one listing that a buyer could still claim
    op.execute("""
        CREATE UNIQUE INDEX uq_listings_open_quota ON marketplace_listings (quota_id)
        WHERE quota_id IS NOT NULL AND status IN ('ACTIVE', 'PAUSED');
    """)
    op.execute("CREATE INDEX idx_order_items_quota ON marketplace_order_items (quota_id) WHERE quota_id IS NOT NULL;")


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_order_items_quota;")
    op.execute("DROP INDEX IF EXISTS uq_listings_open_quota;")
    op.execute("""
        ALTER TABLE marketplace_orders
            DROP COLUMN IF EXISTS courier_released,
            DROP COLUMN IF EXISTS delivery_confirmation_code;
    """)
