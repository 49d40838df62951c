"""005: create marketplace orders, items and ratings

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE marketplace_orders (
            id                      UUID          PRIMARY KEY DEFAULT gen_random_uuid(),
            buyer_id                UUID          NOT NULL REFERENCES users(id),
            seller_id               UUID          NOT NULL REFERENCES users(id),
            amount                  BIGINT        NOT NULL,
            fee_amount              BIGINT        NOT NULL,
            seller_amount           BIGINT        NOT NULL,
            delivery_fee            BIGINT        NOT NULL DEFAULT 0,
            total_charged           BIGINT        NOT NULL,
            payment_method          VARCHAR(20)   NOT NULL,
            status                  VARCHAR(20)   NOT NULL,
            delivery_status         VARCHAR(20)   NOT NULL DEFAULT 'NONE',
            delivery_type           VARCHAR(20)   NOT NULL DEFAULT 'SELF_PICKUP',
            delivery_address        VARCHAR(500),
            contact_phone           VARCHAR(20),
            courier_id              UUID          REFERENCES users(id),
            courier_lat             NUMERIC(9, 6),
            courier_lng             NUMERIC(9, 6),
            pickup_lat              NUMERIC(9, 6),
            pickup_lng              NUMERIC(9, 6),
            delivery_lat            NUMERIC(9, 6),
            delivery_lng            NUMERIC(9, 6),
            pickup_code             VARCHAR(10),
            offline_token           VARCHAR(50),
            origin_type             VARCHAR(20)   NOT NULL DEFAULT 'MARKETPLACE',
            origin_ref              VARCHAR(64),
            seller_released         BOOLEAN       NOT NULL DEFAULT FALSE,
            welcome_benefit_applied BOOLEAN       NOT NULL DEFAULT FALSE,
            dispute_reason          TEXT,
            disputed_at             TIMESTAMPTZ,
            created_at              TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_conservation CHECK (seller_amount + fee_amount = amount),
            CONSTRAINT ck_orders_amounts      CHECK (amount > 0 AND fee_amount >= 0
                                                     AND delivery_fee >= 0 AND total_charged >= amount),
            CONSTRAINT ck_orders_payment      CHECK (payment_method IN ('BALANCE', 'CRED30_CREDIT', 'OFFLINE_QR')),
            CONSTRAINT ck_orders_status       CHECK (status IN ('WAITING_SHIPPING', 'IN_TRANSIT', 'DELIVERED',
                                                                'COMPLETED', 'CANCELLED', 'DISPUTE')),
            CONSTRAINT ck_orders_delivery     CHECK (delivery_status IN ('NONE', 'AVAILABLE', 'ACCEPTED',
                                                                         'IN_TRANSIT', 'DELIVERED')),
            CONSTRAINT ck_orders_delivery_type CHECK (delivery_type IN ('SELF_PICKUP', 'COURIER_REQUEST',
                                                                         'EXTERNAL_SHIPPING')),
            CONSTRAINT ck_orders_origin       CHECK (origin_type IN ('MARKETPLACE', 'PDV_SALE', 'OFFLINE_SYNC'))
        );
    """)
    op.execute("CREATE INDEX idx_orders_buyer ON marketplace_orders (buyer_id, created_at DESC);")
    op.execute("CREATE INDEX idx_orders_seller ON marketplace_orders (seller_id, created_at DESC);")
    op.execute("CREATE INDEX idx_orders_courier ON marketplace_orders (courier_id) WHERE courier_id IS NOT NULL;")
    op.execute("""
        CREATE INDEX idx_orders_missions ON marketplace_orders (created_at)
        WHERE delivery_status = 'AVAILABLE';
    """)
    op.execute("""
        CREATE INDEX idx_orders_credit_open ON marketplace_orders (status)
        WHERE payment_method = 'CRED30_CREDIT';
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_orders_offline_token ON marketplace_orders (offline_token)
        WHERE offline_token IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON marketplace_orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE marketplace_order_items (
            id          BIGSERIAL    PRIMARY KEY,
            order_id    UUID         NOT NULL REFERENCES marketplace_orders(id),
            listing_id  UUID         NOT NULL REFERENCES marketplace_listings(id),
            title       VARCHAR(200) NOT NULL,
            price       BIGINT       NOT NULL,
            quota_id    UUID         REFERENCES quotas(id)
        );
    """)
    op.execute("CREATE INDEX idx_order_items_order ON marketplace_order_items (order_id);")
    op.execute("CREATE INDEX idx_order_items_listing ON marketplace_order_items (listing_id);")

    op.execute("""
        CREATE TABLE marketplace_ratings (
            id               BIGSERIAL   PRIMARY KEY,
            order_id         UUID        NOT NULL REFERENCES marketplace_orders(id),
            rater_id         UUID        NOT NULL REFERENCES users(id),
            rated_member_id  UUID        NOT NULL REFERENCES users(id),
            rating           SMALLINT    NOT NULL,
            comment          TEXT,
            created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_ratings_order_rater UNIQUE (order_id, rater_id),
            CONSTRAINT ck_ratings_range       CHECK (rating BETWEEN -5 AND 5)
        );
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS marketplace_ratings CASCADE;")
    op.execute("DROP TABLE IF EXISTS marketplace_order_items CASCADE;")
    op.execute("DROP TABLE IF EXISTS marketplace_orders CASCADE;")
