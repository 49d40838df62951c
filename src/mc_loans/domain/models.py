"""Domain models for mc_loans: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class LoanOrigin:
    """What a loan financed. Marketplace loans point at their order."""

    kind: str                        # MARKETPLACE_FINANCING | DIRECT
    order_id: str | None = None

    @classmethod
    def marketplace(cls, order_id: str) -> "LoanOrigin":
        return cls("MARKETPLACE_FINANCING", order_id)


@dataclass
class ScheduleLine:
    number: int                      # 1-based
    amount: int                      # cents
    due_date: datetime


@dataclass
class Schedule:
    principal: int                   # goods value, cents
    financed_fee: int                # delivery fee rolled into the loan, cents
    interest: int
    total_repayment: int
    lines: list[ScheduleLine] = field(default_factory=list)

    @property
    def amount(self) -> int:
        """Loan principal as recorded on the loan row."""
        return self.principal + self.financed_fee


@dataclass
class LoanInstallment:
    id: str
    loan_id: str
    installment_number: int
    amount: int
    due_date: datetime
    status: str = "PENDING"
    paid_at: datetime | None = None


@dataclass
class Loan:
    id: str
    member_id: str
    amount: int                      # cents
    total_repayment: int
    installments: int
    interest_rate_bps: int           # monthly
    status: str
    origin: LoanOrigin
    due_date: datetime | None = None
    guarantor_id: str | None = None
    created_at: datetime | None = None
    schedule: list[LoanInstallment] = field(default_factory=list)
