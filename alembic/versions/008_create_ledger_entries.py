"""008: create ledger entries

Revision ID: 008
Revises: 007
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            id              BIGSERIAL    PRIMARY KEY,
            member_id       UUID         NOT NULL REFERENCES users(id),
            entry_type      VARCHAR(30)  NOT NULL,
            amount          BIGINT       NOT NULL,
            balance_after   BIGINT       NOT NULL,
            status          VARCHAR(20)  NOT NULL DEFAULT 'COMPLETED',
            description     VARCHAR(500),
            reference_type  VARCHAR(30),
            reference_id    VARCHAR(64),
            metadata        JSONB,
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_status CHECK (status IN ('PENDING', 'APPROVED', 'COMPLETED'))
        );
    """)
    op.execute("CREATE INDEX idx_ledger_member ON ledger_entries (member_id, id DESC);")
    op.execute("CREATE INDEX idx_ledger_reference ON ledger_entries (reference_type, reference_id);")
    op.execute("CREATE INDEX idx_ledger_type ON ledger_entries (entry_type);")
    op.execute("COMMENT ON TABLE ledger_entries IS 'Append-only money movement log; never UPDATE or DELETE';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
