"""002: create users (member accounts)

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id                   UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            username             VARCHAR(64)  NOT NULL,
            email                VARCHAR(255) NOT NULL,
            password_hash        VARCHAR(255) NOT NULL,
            is_active            BOOLEAN      NOT NULL DEFAULT TRUE,
            is_admin             BOOLEAN      NOT NULL DEFAULT FALSE,
            score                INTEGER      NOT NULL DEFAULT 0,
            balance              BIGINT       NOT NULL DEFAULT 0,
            ad_points            INTEGER      NOT NULL DEFAULT 0,
            identity_verified    BOOLEAN      NOT NULL DEFAULT FALSE,
            payment_key          VARCHAR(140),
            phone                VARCHAR(32),
            phone_verified       BOOLEAN      NOT NULL DEFAULT FALSE,
            is_verified_seller   BOOLEAN      NOT NULL DEFAULT FALSE,
            membership_type      VARCHAR(10)  NOT NULL DEFAULT 'FREE',
            referred_by          UUID         REFERENCES users(id),
            welcome_benefit_uses INTEGER      NOT NULL DEFAULT 0,
            created_at           TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_username     UNIQUE (username),
            CONSTRAINT uq_users_email        UNIQUE (email),
            CONSTRAINT ck_users_username_len CHECK (LENGTH(username) >= 3),
            CONSTRAINT ck_users_balance      CHECK (balance >= 0),
            CONSTRAINT ck_users_score        CHECK (score >= 0),
            CONSTRAINT ck_users_welcome      CHECK (welcome_benefit_uses >= 0),
            CONSTRAINT ck_users_membership   CHECK (membership_type IN ('FREE', 'PRO'))
        );
    """)
    op.execute("CREATE INDEX idx_users_email ON users (email);")
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON COLUMN users.balance IS 'Spendable balance in cents; mutated only via mc_ledger';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
