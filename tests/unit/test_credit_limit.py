"""Unit tests for the basic credit limit formula and its gates."""

from datetime import UTC, datetime

from src.mc_credit.domain.limit import (
    GATE_NO_QUOTAS,
    GATE_OVERDUE,
    compute_limit,
    personal_limit,
)
from src.mc_credit.domain.models import CreditProfile

PLENTY_OF_CASH = 100_000_000


def _profile(
    score: int = 600,
    quotas_value: int = 20_000,
    paid: int = 0,
    overdue: int = 0,
) -> CreditProfile:
    return CreditProfile(
        member_id="member-1",
        score=score,
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
        total_quotas_value=quotas_value,
        active_quota_count=quotas_value // 4000,
        credit_request_count=paid,
        paid_loan_count=paid,
        overdue_loan_count=overdue,
    )


class TestPersonalLimit:
    def test_worked_example(self) -> None:
        # (50 + 600*5 + 200*2) * 1.2 = 4140 currency units
        assert personal_limit(600, 20_000, 1) == 414_000

    def test_no_paid_loans(self) -> None:
        # 50 + 500*5 + 40*2 = 2630
        assert personal_limit(500, 4_000, 0) == 263_000

    def test_fraction_is_floored_to_whole_unit(self) -> None:
        # (50 + 5 + 80.02) * 1.2 = 162.024 -> 162
        assert personal_limit(1, 4_001, 1) == 16_200


class TestComputeLimit:
    def test_no_quotas_gate(self) -> None:
        b = compute_limit(_profile(quotas_value=0), PLENTY_OF_CASH)
        assert b.final_limit == 0
        assert b.gate == GATE_NO_QUOTAS

    def test_overdue_gate(self) -> None:
        b = compute_limit(_profile(overdue=1), PLENTY_OF_CASH)
        assert b.final_limit == 0
        assert b.gate == GATE_OVERDUE

    def test_uncapped(self) -> None:
        b = compute_limit(_profile(paid=1), PLENTY_OF_CASH)
        assert b.final_limit == 414_000
        assert b.gate is None
        assert not b.low_score_capped
        assert not b.ceiling_capped

    def test_low_score_cap(self) -> None:
        b = compute_limit(_profile(score=50, quotas_value=1_000_000), PLENTY_OF_CASH)
        assert b.low_score_capped
        assert b.final_limit == 30_000

    def test_global_ceiling(self) -> None:
        b = compute_limit(_profile(score=1000, quotas_value=5_000_000), PLENTY_OF_CASH)
        assert b.ceiling_capped
        assert b.final_limit == 5_000_000

    def test_clamped_to_operational_cash(self) -> None:
        b = compute_limit(_profile(paid=1), 100_000)
        assert b.personal_limit == 414_000
        assert b.final_limit == 100_000

    def test_negative_cash_means_zero(self) -> None:
        b = compute_limit(_profile(paid=1), -5_000)
        assert b.final_limit == 0

    def test_breakdown_is_serialisable(self) -> None:
        d = compute_limit(_profile(), PLENTY_OF_CASH).as_dict()
        assert d["score"] == 600
        assert d["final_limit"] == d["personal_limit"]
