"""Installment schedule generation: pure integer arithmetic.

Simple (non-compounding) interest on the goods value only:

    interest = ceil(principal * rate_bps * n / 10000)
    total    = principal + interest + financed_fee

Each of the n installments is floor(total / n); the last one also takes the
remainder, so the lines always add up to ``total`` exactly. Due dates are
successive monthly anniversaries of ``start``.
"""

from datetime import datetime

from src.mc_common.cents import calculate_fee
from src.mc_common.datetime_utils import add_months
from src.mc_loans.domain.models import Schedule, ScheduleLine


def build_schedule(
    principal: int,
    installments: int,
    monthly_rate_bps: int,
    financed_fee: int,
    start: datetime,
) -> Schedule:
    if installments < 1:
        raise ValueError(f"installments must be >= 1, got {installments}")
    if principal < 0 or financed_fee < 0:
        raise ValueError("principal and financed_fee must be non-negative")

    interest = calculate_fee(principal, monthly_rate_bps * installments)
    total = principal + interest + financed_fee
    base = total // installments
    remainder = total - base * installments

    lines = [
        ScheduleLine(
            number=n,
            amount=base + (remainder if n == installments else 0),
            due_date=add_months(start, n),
        )
        for n in range(1, installments + 1)
    ]
    return Schedule(
        principal=principal,
        financed_fee=financed_fee,
        interest=interest,
        total_repayment=total,
        lines=lines,
    )
