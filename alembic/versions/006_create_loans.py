"""006: create loans and installments

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE loans (
            id                UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            member_id         UUID        NOT NULL REFERENCES users(id),
            amount            BIGINT      NOT NULL,
            total_repayment   BIGINT      NOT NULL,
            installments      INTEGER     NOT NULL,
            interest_rate_bps INTEGER     NOT NULL,
            status            VARCHAR(20) NOT NULL DEFAULT 'APPROVED',
            origin_type       VARCHAR(30) NOT NULL,
            order_id          UUID        REFERENCES marketplace_orders(id),
            due_date          TIMESTAMPTZ,
            guarantor_id      UUID        REFERENCES users(id),
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_loans_status CHECK (status IN ('APPROVED', 'ACTIVE', 'PAYMENT_PENDING',
                                                         'CANCELLED', 'PAID')),
            CONSTRAINT ck_loans_amount CHECK (amount > 0 AND total_repayment >= amount),
            CONSTRAINT ck_loans_installments CHECK (installments >= 1)
        );
    """)
    op.execute("CREATE INDEX idx_loans_member_status ON loans (member_id, status);")
    op.execute("CREATE INDEX idx_loans_order ON loans (order_id) WHERE order_id IS NOT NULL;")
    op.execute("CREATE INDEX idx_loans_guarantor ON loans (guarantor_id) WHERE guarantor_id IS NOT NULL;")
    op.execute("""
        CREATE TRIGGER trg_loans_updated_at
            BEFORE UPDATE ON loans
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE loan_installments (
            id                 BIGSERIAL   PRIMARY KEY,
            loan_id            UUID        NOT NULL REFERENCES loans(id),
            installment_number INTEGER     NOT NULL,
            amount             BIGINT      NOT NULL,
            due_date           TIMESTAMPTZ NOT NULL,
            status             VARCHAR(10) NOT NULL DEFAULT 'PENDING',
            paid_at            TIMESTAMPTZ,
            CONSTRAINT uq_installments_number UNIQUE (loan_id, installment_number),
            CONSTRAINT ck_installments_status CHECK (status IN ('PENDING', 'PAID', 'LATE'))
        );
    """)
    op.execute("""
        CREATE INDEX idx_installments_open_due ON loan_installments (due_date)
        WHERE status = 'PENDING';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS loan_installments CASCADE;")
    op.execute("DROP TABLE IF EXISTS loans CASCADE;")
