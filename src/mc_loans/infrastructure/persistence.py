"""LoanRepository: loans and loan_installments.

Transaction ownership: the CALLER commits. Loan creation and cancellation run
inside marketplace units of work; repayment runs inside LoanService.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.errors import InternalError
from src.mc_loans.domain.models import Loan, LoanInstallment, LoanOrigin, Schedule

_LOAN_COLUMNS = """
    id, member_id, amount, total_repayment, installments, interest_rate_bps,
    status, origin_type, order_id, due_date, guarantor_id, created_at
"""

_INSERT_LOAN_SQL = text("""
    INSERT INTO loans
        (member_id, amount, total_repayment, installments, interest_rate_bps,
         status, origin_type, order_id, due_date)
    VALUES
        (:member_id, :amount, :total_repayment, :installments, :interest_rate_bps,
         'APPROVED', :origin_type, :order_id, :due_date)
    RETURNING id
""")

_INSERT_INSTALLMENT_SQL = text("""
    INSERT INTO loan_installments (loan_id, installment_number, amount, due_date, status)
    VALUES (:loan_id, :installment_number, :amount, :due_date, 'PENDING')
""")

_LOCK_ORDER_LOAN_SQL = text(f"""
    SELECT {_LOAN_COLUMNS}
    FROM loans
    WHERE order_id = :order_id AND member_id = :member_id AND status <> 'CANCELLED'
    FOR UPDATE
""")

_COUNT_PAID_SQL = text(
    "SELECT COUNT(*) FROM loan_installments WHERE loan_id = :loan_id AND status = 'PAID'"
)

_CANCEL_LOAN_SQL = text("""
    UPDATE loans
    SET status = 'CANCELLED', due_date = NULL, updated_at = NOW()
    WHERE id = :loan_id AND status = 'APPROVED'
    RETURNING id
""")

_GET_LOAN_SQL = text(f"SELECT {_LOAN_COLUMNS} FROM loans WHERE id = :loan_id")

_LIST_LOANS_SQL = text(f"""
    SELECT {_LOAN_COLUMNS}
    FROM loans
    WHERE member_id = :member_id
    ORDER BY created_at DESC
    LIMIT 100
""")

_LIST_INSTALLMENTS_SQL = text("""
    SELECT id, loan_id, installment_number, amount, due_date, status, paid_at
    FROM loan_installments
    WHERE loan_id = :loan_id
    ORDER BY installment_number
""")

_LOCK_INSTALLMENT_SQL = text("""
    SELECT id, loan_id, installment_number, amount, due_date, status, paid_at
    FROM loan_installments
    WHERE loan_id = :loan_id AND installment_number = :number
    FOR UPDATE
""")

_MARK_INSTALLMENT_PAID_SQL = text("""
    UPDATE loan_installments
    SET status = 'PAID', paid_at = NOW()
    WHERE id = :installment_id AND status IN ('PENDING', 'LATE')
    RETURNING id
""")

_NEXT_DUE_SQL = text("""
    SELECT MIN(due_date)
    FROM loan_installments
    WHERE loan_id = :loan_id AND status IN ('PENDING', 'LATE')
""")

_SET_DUE_SQL = text(
    "UPDATE loans SET due_date = :due_date, updated_at = NOW() WHERE id = :loan_id"
)

_MARK_LOAN_PAID_SQL = text("""
    UPDATE loans
    SET status = 'PAID', due_date = NULL, updated_at = NOW()
    WHERE id = :loan_id
""")

_MARK_LATE_SQL = text("""
    UPDATE loan_installments li
    SET status = 'LATE'
    FROM loans l
    WHERE l.id = li.loan_id
      AND l.status = 'APPROVED'
      AND li.status = 'PENDING'
      AND li.due_date < NOW()
    RETURNING li.id, l.member_id
""")


def _row_to_loan(row: object) -> Loan:
    order_id = row.order_id  # type: ignore[attr-defined]
    guarantor = row.guarantor_id  # type: ignore[attr-defined]
    return Loan(
        id=str(row.id),  # type: ignore[attr-defined]
        member_id=str(row.member_id),  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        total_repayment=row.total_repayment,  # type: ignore[attr-defined]
        installments=row.installments,  # type: ignore[attr-defined]
        interest_rate_bps=row.interest_rate_bps,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        origin=LoanOrigin(
            kind=row.origin_type,  # type: ignore[attr-defined]
            order_id=str(order_id) if order_id else None,
        ),
        due_date=row.due_date,  # type: ignore[attr-defined]
        guarantor_id=str(guarantor) if guarantor else None,
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_installment(row: object) -> LoanInstallment:
    return LoanInstallment(
        id=str(row.id),  # type: ignore[attr-defined]
        loan_id=str(row.loan_id),  # type: ignore[attr-defined]
        installment_number=row.installment_number,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        due_date=row.due_date,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        paid_at=row.paid_at,  # type: ignore[attr-defined]
    )


class LoanRepository:
    async def insert_loan(
        self,
        db: AsyncSession,
        member_id: str,
        schedule: Schedule,
        interest_rate_bps: int,
        origin: LoanOrigin,
    ) -> str:
        result = await db.execute(
            _INSERT_LOAN_SQL,
            {
                "member_id": member_id,
                "amount": schedule.amount,
                "total_repayment": schedule.total_repayment,
                "installments": len(schedule.lines),
                "interest_rate_bps": interest_rate_bps,
                "origin_type": origin.kind,
                "order_id": origin.order_id,
                "due_date": schedule.lines[0].due_date,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Loan insert returned no rows")
        loan_id = str(row.id)
        await db.execute(
            _INSERT_INSTALLMENT_SQL,
            [
                {
                    "loan_id": loan_id,
                    "installment_number": line.number,
                    "amount": line.amount,
                    "due_date": line.due_date,
                }
                for line in schedule.lines
            ],
        )
        return loan_id

    async def lock_order_loan(
        self, db: AsyncSession, order_id: str, member_id: str
    ) -> Loan | None:
        row = (
            await db.execute(
                _LOCK_ORDER_LOAN_SQL, {"order_id": order_id, "member_id": member_id}
            )
        ).fetchone()
        return _row_to_loan(row) if row else None

    async def count_paid_installments(self, db: AsyncSession, loan_id: str) -> int:
        return int((await db.execute(_COUNT_PAID_SQL, {"loan_id": loan_id})).scalar_one())

    async def cancel_loan(self, db: AsyncSession, loan_id: str) -> bool:
        row = (await db.execute(_CANCEL_LOAN_SQL, {"loan_id": loan_id})).fetchone()
        return row is not None

    async def get_loan(self, db: AsyncSession, loan_id: str) -> Loan | None:
        row = (await db.execute(_GET_LOAN_SQL, {"loan_id": loan_id})).fetchone()
        if row is None:
            return None
        loan = _row_to_loan(row)
        rows = (await db.execute(_LIST_INSTALLMENTS_SQL, {"loan_id": loan_id})).fetchall()
        loan.schedule = [_row_to_installment(r) for r in rows]
        return loan

    async def list_loans(self, db: AsyncSession, member_id: str) -> list[Loan]:
        rows = (await db.execute(_LIST_LOANS_SQL, {"member_id": member_id})).fetchall()
        return [_row_to_loan(r) for r in rows]

    async def lock_installment(
        self, db: AsyncSession, loan_id: str, number: int
    ) -> LoanInstallment | None:
        row = (
            await db.execute(_LOCK_INSTALLMENT_SQL, {"loan_id": loan_id, "number": number})
        ).fetchone()
        return _row_to_installment(row) if row else None

    async def mark_installment_paid(self, db: AsyncSession, installment_id: str) -> bool:
        row = (
            await db.execute(_MARK_INSTALLMENT_PAID_SQL, {"installment_id": installment_id})
        ).fetchone()
        return row is not None

    async def next_open_due_date(self, db: AsyncSession, loan_id: str) -> datetime | None:
        return (await db.execute(_NEXT_DUE_SQL, {"loan_id": loan_id})).scalar_one()  # type: ignore[no-any-return]

    async def set_loan_due_date(
        self, db: AsyncSession, loan_id: str, due_date: datetime
    ) -> None:
        await db.execute(_SET_DUE_SQL, {"loan_id": loan_id, "due_date": due_date})

    async def mark_loan_paid(self, db: AsyncSession, loan_id: str) -> None:
        await db.execute(_MARK_LOAN_PAID_SQL, {"loan_id": loan_id})

    async def mark_late_installments(self, db: AsyncSession) -> list[tuple[str, str]]:
        """Flag PENDING installments past due as LATE. Returns (installment, member) ids."""
        rows = (await db.execute(_MARK_LATE_SQL)).fetchall()
        return [(str(r.id), str(r.member_id)) for r in rows]
