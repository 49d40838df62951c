"""003: create quotas

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE quotas (
            id              UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            member_id       UUID        NOT NULL REFERENCES users(id),
            purchase_price  BIGINT      NOT NULL,
            current_value   BIGINT      NOT NULL,
            yield_rate_bps  INTEGER     NOT NULL DEFAULT 0,
            status          VARCHAR(20) NOT NULL DEFAULT 'ACTIVE',
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_quotas_status CHECK (status IN ('ACTIVE', 'SOLD', 'PENDING')),
            CONSTRAINT ck_quotas_value  CHECK (current_value >= 0 AND purchase_price >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_quotas_member_status ON quotas (member_id, status);")
    op.execute("""
        CREATE TRIGGER trg_quotas_updated_at
            BEFORE UPDATE ON quotas
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS quotas CASCADE;")
