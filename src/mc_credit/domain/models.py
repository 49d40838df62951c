"""Domain models for mc_credit: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class CreditProfile:
    """Everything the basic limit formula reads, loaded in one pass."""

    member_id: str
    score: int
    created_at: datetime
    total_quotas_value: int          # cents, Σ current_value of ACTIVE quotas
    active_quota_count: int
    credit_request_count: int
    paid_loan_count: int
    overdue_loan_count: int


@dataclass
class SystemCash:
    active_quota_count: int          # system-wide
    committed_loans: int             # cents, Σ APPROVED + PAYMENT_PENDING

    def operational_cash(self, quota_price: int) -> int:
        return self.active_quota_count * quota_price - self.committed_loans


@dataclass
class LimitBreakdown:
    """Every intermediate value of one limit computation, for audit logs."""

    score: int = 0
    total_quotas_value: int = 0
    paid_loan_count: int = 0
    overdue_loan_count: int = 0
    operational_cash: int = 0
    base_limit: int = 0
    personal_limit: int = 0
    low_score_capped: bool = False
    ceiling_capped: bool = False
    final_limit: int = 0
    gate: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class LimitResult:
    """Fail-closed result: ``failed`` means limit is 0 because analysis errored."""

    limit: int
    breakdown: LimitBreakdown = field(default_factory=LimitBreakdown)
    failed: bool = False

    @classmethod
    def closed(cls) -> "LimitResult":
        return cls(limit=0, failed=True)


@dataclass
class EligibilityResult:
    eligible: bool
    reason: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtendedScoringParams:
    """Tunable coefficients of the extended limit (basis points / cents)."""

    spent_factor_bps: int = 7000
    quota_factor_bps: int = 7000
    score_bonus_bps_per_1000: int = 1000   # score 1000 -> +10%
    pro_bonus_bps: int = 500
    elite_bonus_bps: int = 500
    elite_min_score: int = 950
    elite_min_age_days: int = 90
    quota_maintenance_cents: int = 800


@dataclass
class ExtendedProfile:
    member_id: str
    score: int
    created_at: datetime
    membership_type: str
    total_quotas_value: int
    active_quota_count: int
    pending_quota_count: int
    overdue_loan_count: int
    marketplace_spent: int
    platform_spent: int
    purchases_count: int
    sales_count: int
    late_installments_365d: int
    active_guarantees: int
    profit_pool: int
