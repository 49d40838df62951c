"""004: create marketplace listings

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE marketplace_listings (
            id               UUID          PRIMARY KEY DEFAULT gen_random_uuid(),
            seller_id        UUID          NOT NULL REFERENCES users(id),
            title            VARCHAR(200)  NOT NULL,
            description      TEXT          NOT NULL DEFAULT '',
            price            BIGINT        NOT NULL,
            category         VARCHAR(50)   NOT NULL DEFAULT 'OTHER',
            item_type        VARCHAR(10)   NOT NULL DEFAULT 'PHYSICAL',
            required_vehicle VARCHAR(10)   NOT NULL DEFAULT 'BIKE',
            quota_id         UUID          REFERENCES quotas(id),
            pickup_lat       NUMERIC(9, 6),
            pickup_lng       NUMERIC(9, 6),
            status           VARCHAR(10)   NOT NULL DEFAULT 'ACTIVE',
            created_at       TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
            updated_at       TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_price   CHECK (price > 0),
            CONSTRAINT ck_listings_type    CHECK (item_type IN ('PHYSICAL', 'DIGITAL')),
            CONSTRAINT ck_listings_vehicle CHECK (required_vehicle IN ('BIKE', 'MOTO', 'CAR', 'TRUCK')),
            CONSTRAINT ck_listings_status  CHECK (status IN ('ACTIVE', 'SOLD', 'PAUSED'))
        );
    """)
    op.execute("CREATE INDEX idx_listings_seller ON marketplace_listings (seller_id);")
    op.execute("CREATE INDEX idx_listings_active ON marketplace_listings (status) WHERE status = 'ACTIVE';")
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
            BEFORE UPDATE ON marketplace_listings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS marketplace_listings CASCADE;")
