"""Ledger-wide invariant audit. Returns violation strings, never raises."""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings

logger = logging.getLogger(__name__)

_OPEN_LOANS_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM loans
    WHERE status IN ('APPROVED', 'PAYMENT_PENDING')
""")
_ACTIVE_QUOTAS_SQL = text("SELECT COUNT(*) FROM quotas WHERE status = 'ACTIVE'")
_BROKEN_ORDERS_SQL = text("""
    SELECT id, amount, fee_amount, seller_amount
    FROM marketplace_orders
    WHERE seller_amount + fee_amount <> amount
    LIMIT 50
""")
_NEGATIVE_BALANCES_SQL = text("""
    SELECT id, balance FROM users WHERE balance < 0 LIMIT 50
""")
_NEGATIVE_RESERVE_SQL = text("""
    SELECT system_balance FROM system_reserve WHERE id = 1 AND system_balance < 0
""")


async def verify_ledger_invariants(db: AsyncSession) -> list[str]:
    violations: list[str] = []

    open_loans = (await db.execute(_OPEN_LOANS_SQL)).scalar_one()
    active_quotas = (await db.execute(_ACTIVE_QUOTAS_SQL)).scalar_one()
    backing = active_quotas * settings.QUOTA_PRICE_CENTS
    if open_loans > backing:
        violations.append(
            f"over-lending: open loans {open_loans} > active quotas {active_quotas} "
            f"x {settings.QUOTA_PRICE_CENTS} = {backing}"
        )

    for row in (await db.execute(_BROKEN_ORDERS_SQL)).fetchall():
        violations.append(
            f"order {row.id}: seller_amount({row.seller_amount}) + "
            f"fee_amount({row.fee_amount}) != amount({row.amount})"
        )

    for row in (await db.execute(_NEGATIVE_BALANCES_SQL)).fetchall():
        violations.append(f"member {row.id} has negative balance {row.balance}")

    negative_reserve = (await db.execute(_NEGATIVE_RESERVE_SQL)).fetchone()
    if negative_reserve is not None:
        violations.append(f"system_balance is negative: {negative_reserve.system_balance}")

    for v in violations:
        logger.error("Invariant violated: %s", v)
    return violations
