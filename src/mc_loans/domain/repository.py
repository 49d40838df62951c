"""Repository Protocol for mc_loans."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mc_loans.domain.models import Loan, LoanInstallment, LoanOrigin, Schedule


class LoanRepositoryProtocol(Protocol):
    async def insert_loan(
        self,
        db: AsyncSession,
        member_id: str,
        schedule: Schedule,
        interest_rate_bps: int,
        origin: LoanOrigin,
    ) -> str: ...

    async def lock_order_loan(
        self, db: AsyncSession, order_id: str, member_id: str
    ) -> Loan | None: ...

    async def count_paid_installments(self, db: AsyncSession, loan_id: str) -> int: ...

    async def cancel_loan(self, db: AsyncSession, loan_id: str) -> bool: ...

    async def get_loan(self, db: AsyncSession, loan_id: str) -> Loan | None: ...

    async def list_loans(self, db: AsyncSession, member_id: str) -> list[Loan]: ...

    async def lock_installment(
        self, db: AsyncSession, loan_id: str, number: int
    ) -> LoanInstallment | None: ...

    async def mark_installment_paid(self, db: AsyncSession, installment_id: str) -> bool: ...

    async def next_open_due_date(self, db: AsyncSession, loan_id: str) -> datetime | None: ...

    async def set_loan_due_date(
        self, db: AsyncSession, loan_id: str, due_date: datetime
    ) -> None: ...

    async def mark_loan_paid(self, db: AsyncSession, loan_id: str) -> None: ...

    async def mark_late_installments(self, db: AsyncSession) -> list[tuple[str, str]]: ...
