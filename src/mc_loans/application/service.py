"""LoanService: installment loan generation, unwinding and repayment.

create_marketplace_loan and cancel_order_loan run inside the caller's unit of
work and never commit. pay_installment and mark_late_installments are
standalone units of work.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_common.datetime_utils import utc_now
from src.mc_common.enums import (
    BalanceDirection,
    InstallmentStatus,
    LedgerEntryType,
    LoanStatus,
)
from src.mc_common.errors import (
    InstallmentNotPayableError,
    LoanNotCancellableError,
    LoanNotFoundError,
)
from src.mc_ledger.domain.models import ReserveDeltas
from src.mc_ledger.domain.repository import LedgerRepositoryProtocol
from src.mc_ledger.infrastructure.persistence import LedgerRepository
from src.mc_loans.application.schemas import (
    LoanItem,
    LoanListResponse,
    PayInstallmentResponse,
)
from src.mc_loans.domain.models import LoanOrigin, Schedule
from src.mc_loans.domain.repository import LoanRepositoryProtocol
from src.mc_loans.domain.schedule import build_schedule
from src.mc_loans.infrastructure.persistence import LoanRepository

logger = logging.getLogger(__name__)

_OPEN_LOAN_STATUSES = (LoanStatus.APPROVED, LoanStatus.PAYMENT_PENDING)


class LoanService:
    def __init__(
        self,
        repo: LoanRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
    ) -> None:
        self._repo: LoanRepositoryProtocol = repo or LoanRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()

    async def create_marketplace_loan(
        self,
        db: AsyncSession,
        member_id: str,
        order_id: str,
        goods_amount: int,
        delivery_fee: int,
        installments: int,
        monthly_rate_bps: int,
        start: datetime | None = None,
    ) -> tuple[str, Schedule]:
        """Create an APPROVED loan whose principal is goods + financed delivery."""
        schedule = build_schedule(
            goods_amount, installments, monthly_rate_bps, delivery_fee, start or utc_now()
        )
        loan_id = await self._repo.insert_loan(
            db, member_id, schedule, monthly_rate_bps, LoanOrigin.marketplace(order_id)
        )
        logger.info(
            "Loan %s created for order %s: %d cents in %d x (total %d)",
            loan_id, order_id, schedule.amount, installments, schedule.total_repayment,
        )
        return loan_id, schedule

    async def cancel_order_loan(self, db: AsyncSession, order_id: str, member_id: str) -> str:
        """Cancel the APPROVED loan financing ``order_id``. Returns the loan id.

        A loan with any installment already PAID cannot be unwound here.
        """
        loan = await self._repo.lock_order_loan(db, order_id, member_id)
        if loan is None:
            raise LoanNotCancellableError(f"no open loan for order {order_id}")
        if loan.status != LoanStatus.APPROVED:
            raise LoanNotCancellableError(f"loan {loan.id} is {loan.status}")
        if await self._repo.count_paid_installments(db, loan.id) > 0:
            raise LoanNotCancellableError(f"loan {loan.id} already has paid installments")
        if not await self._repo.cancel_loan(db, loan.id):
            raise LoanNotCancellableError(f"loan {loan.id} changed state concurrently")
        logger.info("Loan %s for order %s cancelled", loan.id, order_id)
        return loan.id

    async def list_loans(self, db: AsyncSession, member_id: str) -> LoanListResponse:
        loans = await self._repo.list_loans(db, member_id)
        return LoanListResponse(items=[LoanItem.from_domain(loan) for loan in loans])

    async def get_loan(self, db: AsyncSession, member_id: str, loan_id: str) -> LoanItem:
        loan = await self._repo.get_loan(db, loan_id)
        if loan is None or loan.member_id != member_id:
            raise LoanNotFoundError(loan_id)
        return LoanItem.from_domain(loan, with_schedule=True)

    async def pay_installment(
        self, db: AsyncSession, member_id: str, loan_id: str, number: int
    ) -> PayInstallmentResponse:
        """Debit the member, settle one installment, return cash to system_balance."""
        try:
            loan = await self._repo.get_loan(db, loan_id)
            if loan is None or loan.member_id != member_id:
                raise LoanNotFoundError(loan_id)
            if loan.status not in _OPEN_LOAN_STATUSES:
                raise InstallmentNotPayableError(f"loan is {loan.status}")

            await self._ledger.lock_member(db, member_id)
            installment = await self._repo.lock_installment(db, loan_id, number)
            if installment is None:
                raise InstallmentNotPayableError(f"installment {number} does not exist")
            if installment.status == InstallmentStatus.PAID:
                raise InstallmentNotPayableError(f"installment {number} is already paid")

            balance = await self._ledger.adjust_balance(
                db, member_id, installment.amount, BalanceDirection.DEBIT
            )
            if not await self._repo.mark_installment_paid(db, installment.id):
                raise InstallmentNotPayableError(f"installment {number} is already paid")

            await self._ledger.lock_system_reserve(db)
            await self._ledger.increment_system_reserves(
                db, ReserveDeltas(system_balance=installment.amount)
            )

            next_due = await self._repo.next_open_due_date(db, loan_id)
            if next_due is None:
                await self._repo.mark_loan_paid(db, loan_id)
                loan_status = LoanStatus.PAID.value
            else:
                await self._repo.set_loan_due_date(db, loan_id, next_due)
                loan_status = loan.status

            await self._ledger.record_entry(
                db,
                member_id,
                LedgerEntryType.LOAN_REPAYMENT,
                -installment.amount,
                f"Installment {number}/{loan.installments}",
                reference_type="LOAN",
                reference_id=loan_id,
                metadata={
                    "installment": number,
                    "late": installment.status == InstallmentStatus.LATE,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Loan %s installment %d paid by member %s", loan_id, number, member_id)
        return PayInstallmentResponse(
            loan_id=loan_id,
            installment_number=number,
            paid_cents=installment.amount,
            balance_cents=balance,
            loan_status=loan_status,
            next_due_date=next_due.isoformat() if next_due else None,
        )

    async def mark_late_installments(self, db: AsyncSession) -> int:
        try:
            flagged = await self._repo.mark_late_installments(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        for installment_id, member_id in flagged:
            logger.info("Installment %s of member %s is now LATE", installment_id, member_id)
        return len(flagged)
