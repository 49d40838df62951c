"""CreditRepository: read-only aggregates feeding the limit formulas.

All queries run on the caller's session, so inside a purchase they observe
the same snapshot (and the same row locks) as the rest of the unit of work.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_credit.domain.models import CreditProfile, ExtendedProfile, SystemCash

# A loan is overdue when it is still APPROVED and either its next due date or
# any unpaid installment is in the past.
_OVERDUE_LOANS_EXPR = """
    (SELECT COUNT(*) FROM loans l
     WHERE l.member_id = u.id
       AND l.status = 'APPROVED'
       AND (l.due_date < NOW()
            OR EXISTS (SELECT 1 FROM loan_installments li
                       WHERE li.loan_id = l.id
                         AND li.status IN ('PENDING', 'LATE')
                         AND li.due_date < NOW())))
"""

_PROFILE_SQL = text(f"""
    SELECT u.id, u.score, u.created_at,
           COALESCE((SELECT SUM(q.current_value) FROM quotas q
                     WHERE q.member_id = u.id AND q.status = 'ACTIVE'), 0) AS total_quotas_value,
           (SELECT COUNT(*) FROM quotas q
            WHERE q.member_id = u.id AND q.status = 'ACTIVE') AS active_quota_count,
           (SELECT COUNT(*) FROM loans l WHERE l.member_id = u.id) AS credit_request_count,
           (SELECT COUNT(*) FROM loans l
            WHERE l.member_id = u.id AND l.status = 'PAID') AS paid_loan_count,
           {_OVERDUE_LOANS_EXPR} AS overdue_loan_count
    FROM users u
    WHERE u.id = :member_id
""")

_EXTENDED_PROFILE_SQL = text(f"""
    SELECT u.id, u.score, u.created_at, u.membership_type,
           COALESCE((SELECT SUM(q.current_value) FROM quotas q
                     WHERE q.member_id = u.id AND q.status = 'ACTIVE'), 0) AS total_quotas_value,
           (SELECT COUNT(*) FROM quotas q
            WHERE q.member_id = u.id AND q.status = 'ACTIVE') AS active_quota_count,
           (SELECT COUNT(*) FROM quotas q
            WHERE q.member_id = u.id AND q.status = 'PENDING') AS pending_quota_count,
           {_OVERDUE_LOANS_EXPR} AS overdue_loan_count,
           COALESCE((SELECT SUM(o.total_charged) FROM marketplace_orders o
                     WHERE o.buyer_id = u.id AND o.status = 'COMPLETED'), 0) AS marketplace_spent,
           COALESCE((SELECT -SUM(e.amount) FROM ledger_entries e
                     WHERE e.member_id = u.id AND e.entry_type = 'FEE_PAYMENT'), 0) AS platform_spent,
           (SELECT COUNT(*) FROM marketplace_orders o
            WHERE o.buyer_id = u.id AND o.status = 'COMPLETED') AS purchases_count,
           (SELECT COUNT(*) FROM marketplace_orders o
            WHERE o.seller_id = u.id AND o.status = 'COMPLETED') AS sales_count,
           (SELECT COUNT(*) FROM loan_installments li JOIN loans l ON l.id = li.loan_id
            WHERE l.member_id = u.id
              AND li.due_date >= NOW() - INTERVAL '365 days'
              AND (li.status = 'LATE'
                   OR (li.paid_at IS NOT NULL AND li.paid_at > li.due_date))) AS late_installments_365d,
           (SELECT COUNT(*) FROM loans l
            WHERE l.guarantor_id = u.id
              AND l.status IN ('APPROVED', 'PAYMENT_PENDING')) AS active_guarantees,
           (SELECT profit_pool FROM system_reserve WHERE id = 1) AS profit_pool
    FROM users u
    WHERE u.id = :member_id
""")

_SYSTEM_CASH_SQL = text("""
    SELECT (SELECT COUNT(*) FROM quotas WHERE status = 'ACTIVE') AS active_quota_count,
           COALESCE((SELECT SUM(amount) FROM loans
                     WHERE status IN ('APPROVED', 'PAYMENT_PENDING')), 0) AS committed_loans
""")

_OUTSTANDING_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM loans
    WHERE member_id = :member_id AND status IN ('APPROVED', 'PAYMENT_PENDING')
""")


class CreditRepository:
    async def get_profile(self, db: AsyncSession, member_id: str) -> CreditProfile | None:
        row = (await db.execute(_PROFILE_SQL, {"member_id": member_id})).fetchone()
        if row is None:
            return None
        return CreditProfile(
            member_id=str(row.id),
            score=row.score,
            created_at=row.created_at,
            total_quotas_value=int(row.total_quotas_value),
            active_quota_count=int(row.active_quota_count),
            credit_request_count=int(row.credit_request_count),
            paid_loan_count=int(row.paid_loan_count),
            overdue_loan_count=int(row.overdue_loan_count),
        )

    async def get_extended_profile(
        self, db: AsyncSession, member_id: str
    ) -> ExtendedProfile | None:
        row = (await db.execute(_EXTENDED_PROFILE_SQL, {"member_id": member_id})).fetchone()
        if row is None:
            return None
        return ExtendedProfile(
            member_id=str(row.id),
            score=row.score,
            created_at=row.created_at,
            membership_type=row.membership_type,
            total_quotas_value=int(row.total_quotas_value),
            active_quota_count=int(row.active_quota_count),
            pending_quota_count=int(row.pending_quota_count),
            overdue_loan_count=int(row.overdue_loan_count),
            marketplace_spent=int(row.marketplace_spent),
            platform_spent=int(row.platform_spent),
            purchases_count=int(row.purchases_count),
            sales_count=int(row.sales_count),
            late_installments_365d=int(row.late_installments_365d),
            active_guarantees=int(row.active_guarantees),
            profit_pool=int(row.profit_pool or 0),
        )

    async def get_system_cash(self, db: AsyncSession) -> SystemCash:
        row = (await db.execute(_SYSTEM_CASH_SQL)).fetchone()
        return SystemCash(
            active_quota_count=int(row.active_quota_count),  # type: ignore[union-attr]
            committed_loans=int(row.committed_loans),  # type: ignore[union-attr]
        )

    async def get_outstanding_loans(self, db: AsyncSession, member_id: str) -> int:
        return int((await db.execute(_OUTSTANDING_SQL, {"member_id": member_id})).scalar_one())
