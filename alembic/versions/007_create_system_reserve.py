"""007: create system reserve singleton

Revision ID: 007
Revises: 006
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE system_reserve (
            id                                 SMALLINT    PRIMARY KEY,
            system_balance                     BIGINT      NOT NULL DEFAULT 0,
            profit_pool                        BIGINT      NOT NULL DEFAULT 0,
            total_tax_reserve                  BIGINT      NOT NULL DEFAULT 0,
            total_operational_reserve          BIGINT      NOT NULL DEFAULT 0,
            total_owner_profit                 BIGINT      NOT NULL DEFAULT 0,
            investment_reserve                 BIGINT      NOT NULL DEFAULT 0,
            total_corporate_investment_reserve BIGINT      NOT NULL DEFAULT 0,
            mutual_reserve                     BIGINT      NOT NULL DEFAULT 0,
            updated_at                         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_system_reserve_singleton CHECK (id = 1)
        );
    """)
    op.execute("INSERT INTO system_reserve (id) VALUES (1);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS system_reserve CASCADE;")
