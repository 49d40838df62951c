"""LedgerRepository: concrete implementation of LedgerRepositoryProtocol.

Every balance mutation is a single PostgreSQL UPDATE ... RETURNING. A debit
carries its own guard (``WHERE balance >= :amount``), so 0 rows back means the
member could not afford it and nothing was written.

Transaction ownership: the CALLER (application service) owns the unit of work
and commits or rolls back. Nothing in this module commits.
"""

import json
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.enums import BalanceDirection
from src.mc_common.errors import (
    InsufficientBalanceError,
    InternalError,
    InvalidAmountError,
    MemberNotFoundError,
)
from src.mc_ledger.domain.models import (
    BalanceCheck,
    LedgerEntry,
    Member,
    ReserveDeltas,
    SystemReserve,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# SQL: members
# ---------------------------------------------------------------------------

_MEMBER_COLUMNS = """
    id, score, balance, is_verified_seller, identity_verified, payment_key,
    phone_verified, membership_type, referred_by, welcome_benefit_uses,
    is_admin, ad_points, created_at
"""

_GET_MEMBER_SQL = text(f"SELECT {_MEMBER_COLUMNS} FROM users WHERE id = :member_id")

_LOCK_MEMBER_SQL = text(
    f"SELECT {_MEMBER_COLUMNS} FROM users WHERE id = :member_id FOR UPDATE"
)

_CREDIT_SQL = text("""
    UPDATE users
    SET balance = balance + :amount
    WHERE id = :member_id
    RETURNING balance
""")

_DEBIT_SQL = text("""
    UPDATE users
    SET balance = balance - :amount
    WHERE id = :member_id AND balance >= :amount
    RETURNING balance
""")

_GET_BALANCE_SQL = text("SELECT balance FROM users WHERE id = :member_id")

_ADJUST_SCORE_SQL = text("""
    UPDATE users
    SET score = GREATEST(0, score + :delta)
    WHERE id = :member_id
    RETURNING score
""")

_CONSUME_WELCOME_SQL = text("""
    UPDATE users
    SET welcome_benefit_uses = welcome_benefit_uses + 1
    WHERE id = :member_id AND welcome_benefit_uses < :max_uses
    RETURNING welcome_benefit_uses
""")

# ---------------------------------------------------------------------------
# SQL: system reserve (singleton row id = 1)
# ---------------------------------------------------------------------------

_RESERVE_COLUMNS = """
    system_balance, profit_pool, total_tax_reserve, total_operational_reserve,
    total_owner_profit, investment_reserve, total_corporate_investment_reserve,
    mutual_reserve, updated_at
"""

_LOCK_RESERVE_SQL = text(
    f"SELECT {_RESERVE_COLUMNS} FROM system_reserve WHERE id = 1 FOR UPDATE"
)

_INCREMENT_RESERVE_SQL = text("""
    UPDATE system_reserve
    SET system_balance                     = system_balance + :system_balance,
        profit_pool                        = profit_pool + :profit_pool,
        total_tax_reserve                  = total_tax_reserve + :total_tax_reserve,
        total_operational_reserve          = total_operational_reserve + :total_operational_reserve,
        total_owner_profit                 = total_owner_profit + :total_owner_profit,
        investment_reserve                 = investment_reserve + :investment_reserve,
        total_corporate_investment_reserve = total_corporate_investment_reserve
                                             + :total_corporate_investment_reserve,
        mutual_reserve                     = mutual_reserve + :mutual_reserve,
        updated_at = NOW()
    WHERE id = 1
""")

# ---------------------------------------------------------------------------
# SQL: ledger entries (append-only)
# ---------------------------------------------------------------------------

_INSERT_ENTRY_SQL = text("""
    INSERT INTO ledger_entries
        (member_id, entry_type, amount, balance_after, status, description,
         reference_type, reference_id, metadata)
    VALUES
        (:member_id, :entry_type, :amount,
         COALESCE((SELECT balance FROM users WHERE id = :member_id), 0),
         :status, :description, :reference_type, :reference_id,
         CAST(:metadata AS JSONB))
    RETURNING id
""")

_LIST_ENTRIES_SQL = text("""
    SELECT id, member_id, entry_type, amount, balance_after, status, description,
           reference_type, reference_id, metadata, created_at
    FROM ledger_entries
    WHERE member_id = :member_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = :entry_type)
    ORDER BY id DESC
    LIMIT :limit
""")


def _load_json(value: object) -> dict[str, Any] | None:
    # asyncpg hands JSONB back as text unless a codec is registered
    if value is None:
        return None
    if isinstance(value, str):
        return json.loads(value)  # type: ignore[no-any-return]
    return value  # type: ignore[return-value]


def _row_to_member(row: object) -> Member:
    referred_by = row.referred_by  # type: ignore[attr-defined]
    return Member(
        id=str(row.id),  # type: ignore[attr-defined]
        score=row.score,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        is_verified_seller=row.is_verified_seller,  # type: ignore[attr-defined]
        identity_verified=row.identity_verified,  # type: ignore[attr-defined]
        payment_key=row.payment_key,  # type: ignore[attr-defined]
        phone_verified=row.phone_verified,  # type: ignore[attr-defined]
        membership_type=row.membership_type,  # type: ignore[attr-defined]
        referred_by=str(referred_by) if referred_by else None,
        welcome_benefit_uses=row.welcome_benefit_uses,  # type: ignore[attr-defined]
        is_admin=row.is_admin,  # type: ignore[attr-defined]
        ad_points=row.ad_points,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_reserve(row: object) -> SystemReserve:
    return SystemReserve(
        system_balance=row.system_balance,  # type: ignore[attr-defined]
        profit_pool=row.profit_pool,  # type: ignore[attr-defined]
        total_tax_reserve=row.total_tax_reserve,  # type: ignore[attr-defined]
        total_operational_reserve=row.total_operational_reserve,  # type: ignore[attr-defined]
        total_owner_profit=row.total_owner_profit,  # type: ignore[attr-defined]
        investment_reserve=row.investment_reserve,  # type: ignore[attr-defined]
        total_corporate_investment_reserve=row.total_corporate_investment_reserve,  # type: ignore[attr-defined]
        mutual_reserve=row.mutual_reserve,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_entry(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        member_id=str(row.member_id),  # type: ignore[attr-defined]
        entry_type=row.entry_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        metadata=_load_json(row.metadata),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class LedgerRepository:
    """Concrete repository; all operations atomic at the SQL level."""

    async def get_member(self, db: AsyncSession, member_id: str) -> Member | None:
        row = (await db.execute(_GET_MEMBER_SQL, {"member_id": member_id})).fetchone()
        return _row_to_member(row) if row else None

    async def lock_member(self, db: AsyncSession, member_id: str) -> Member:
        """SELECT ... FOR UPDATE on the member row; held until commit/rollback."""
        row = (await db.execute(_LOCK_MEMBER_SQL, {"member_id": member_id})).fetchone()
        if row is None:
            raise MemberNotFoundError(member_id)
        return _row_to_member(row)

    async def with_locked_balance(
        self, db: AsyncSession, member_id: str, required: int
    ) -> BalanceCheck:
        member = await self.lock_member(db, member_id)
        return BalanceCheck(
            sufficient=member.balance >= required,
            current_balance=member.balance,
        )

    async def adjust_balance(
        self,
        db: AsyncSession,
        member_id: str,
        amount: int,
        direction: BalanceDirection,
    ) -> int:
        """Apply a credit or a guarded debit. Returns the new balance."""
        if amount <= 0:
            raise InvalidAmountError(amount)
        sql = _CREDIT_SQL if direction == BalanceDirection.CREDIT else _DEBIT_SQL
        row = (await db.execute(sql, {"member_id": member_id, "amount": amount})).fetchone()
        if row is not None:
            return int(row.balance)

        current = (await db.execute(_GET_BALANCE_SQL, {"member_id": member_id})).fetchone()
        if current is None:
            raise MemberNotFoundError(member_id)
        raise InsufficientBalanceError(amount, int(current.balance))

    async def lock_system_reserve(self, db: AsyncSession) -> SystemReserve:
        row = (await db.execute(_LOCK_RESERVE_SQL)).fetchone()
        if row is None:
            raise InternalError("system_reserve row missing; run migrations")
        return _row_to_reserve(row)

    async def increment_system_reserves(
        self, db: AsyncSession, deltas: ReserveDeltas
    ) -> None:
        if deltas.is_empty():
            return
        await db.execute(_INCREMENT_RESERVE_SQL, deltas.as_params())
        logger.debug("System reserves incremented: %s", deltas)

    async def record_entry(
        self,
        db: AsyncSession,
        member_id: str,
        entry_type: str,
        amount: int,
        description: str,
        status: str = "COMPLETED",
        reference_type: str | None = None,
        reference_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """Append one ledger row; balance_after is read from the member row."""
        result = await db.execute(
            _INSERT_ENTRY_SQL,
            {
                "member_id": member_id,
                "entry_type": entry_type,
                "amount": amount,
                "status": status,
                "description": description,
                "reference_type": reference_type,
                "reference_id": reference_id,
                "metadata": json.dumps(metadata) if metadata is not None else None,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return int(row.id)

    async def adjust_score(
        self, db: AsyncSession, member_id: str, delta: int, reason: str
    ) -> int:
        """score = max(0, score + delta). Returns the new score."""
        row = (
            await db.execute(_ADJUST_SCORE_SQL, {"member_id": member_id, "delta": delta})
        ).fetchone()
        if row is None:
            raise MemberNotFoundError(member_id)
        logger.info("Score %+d for member %s (%s) -> %d", delta, member_id, reason, row.score)
        return int(row.score)

    async def consume_welcome_benefit(
        self, db: AsyncSession, member_id: str, max_uses: int
    ) -> bool:
        row = (
            await db.execute(
                _CONSUME_WELCOME_SQL, {"member_id": member_id, "max_uses": max_uses}
            )
        ).fetchone()
        return row is not None

    async def list_entries(
        self,
        db: AsyncSession,
        member_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_ENTRIES_SQL,
            {
                "member_id": member_id,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "limit": limit,
            },
        )
        return [_row_to_entry(row) for row in result.fetchall()]
