"""Pydantic schemas for mc_loans API."""

from pydantic import BaseModel

from src.mc_common.cents import cents_to_display
from src.mc_loans.domain.models import Loan, LoanInstallment


class InstallmentItem(BaseModel):
    number: int
    amount_cents: int
    amount_display: str
    due_date: str
    status: str
    paid_at: str | None

    @classmethod
    def from_domain(cls, i: LoanInstallment) -> "InstallmentItem":
        return cls(
            number=i.installment_number,
            amount_cents=i.amount,
            amount_display=cents_to_display(i.amount),
            due_date=i.due_date.isoformat(),
            status=i.status,
            paid_at=i.paid_at.isoformat() if i.paid_at else None,
        )


class LoanItem(BaseModel):
    id: str
    amount_cents: int
    amount_display: str
    total_repayment_cents: int
    installments: int
    interest_rate_bps: int
    status: str
    origin_type: str
    order_id: str | None
    due_date: str | None
    created_at: str
    schedule: list[InstallmentItem] | None = None

    @classmethod
    def from_domain(cls, loan: Loan, with_schedule: bool = False) -> "LoanItem":
        return cls(
            id=loan.id,
            amount_cents=loan.amount,
            amount_display=cents_to_display(loan.amount),
            total_repayment_cents=loan.total_repayment,
            installments=loan.installments,
            interest_rate_bps=loan.interest_rate_bps,
            status=loan.status,
            origin_type=loan.origin.kind,
            order_id=loan.origin.order_id,
            due_date=loan.due_date.isoformat() if loan.due_date else None,
            created_at=loan.created_at.isoformat() if loan.created_at else "",
            schedule=[InstallmentItem.from_domain(i) for i in loan.schedule]
            if with_schedule
            else None,
        )


class LoanListResponse(BaseModel):
    items: list[LoanItem]


class PayInstallmentResponse(BaseModel):
    loan_id: str
    installment_number: int
    paid_cents: int
    balance_cents: int
    loan_status: str
    next_due_date: str | None
