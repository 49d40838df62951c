"""Credit limit formulas: pure integer functions, all money in cents.

Basic limit (in currency units, floored):

    personal = floor((50 + score*5 + quotas_value*2) * (1 + paid_loans*0.20))
    if score < 100: personal = min(personal, 300)
    personal = min(personal, 50_000)
    final = min(personal, max(0, operational_cash))

Gates that force 0 before any arithmetic: no active quota value, or any
overdue loan.
"""

from datetime import datetime

from config.settings import settings
from src.mc_common.cents import BPS_DENOMINATOR, floor_to_unit
from src.mc_credit.domain.models import (
    CreditProfile,
    ExtendedProfile,
    ExtendedScoringParams,
    LimitBreakdown,
)

GATE_MEMBER_NOT_FOUND = "member not found"
GATE_NO_QUOTAS = "no active quotas"
GATE_OVERDUE = "overdue loans"


def personal_limit(score: int, total_quotas_value: int, paid_loan_count: int) -> int:
    """(50 + score*5 + quotas*2) * (1 + paid*0.2) floored to whole currency.

    Working in cents: 50 units = 5000, score*5 units = score*500, and the
    1 + 0.2*paid multiplier is applied as (10 + 2*paid) / 10.
    """
    base = 5000 + score * 500 + total_quotas_value * 2
    return floor_to_unit(base * (10 + 2 * paid_loan_count) // 10)


def compute_limit(profile: CreditProfile, operational_cash: int) -> LimitBreakdown:
    b = LimitBreakdown(
        score=profile.score,
        total_quotas_value=profile.total_quotas_value,
        paid_loan_count=profile.paid_loan_count,
        overdue_loan_count=profile.overdue_loan_count,
        operational_cash=operational_cash,
    )
    if profile.total_quotas_value <= 0:
        b.gate = GATE_NO_QUOTAS
        return b
    if profile.overdue_loan_count > 0:
        b.gate = GATE_OVERDUE
        return b

    b.base_limit = personal_limit(
        profile.score, profile.total_quotas_value, profile.paid_loan_count
    )
    limit = b.base_limit
    if profile.score < settings.LOW_SCORE_THRESHOLD and limit > settings.LOW_SCORE_LIMIT_CAP_CENTS:
        limit = settings.LOW_SCORE_LIMIT_CAP_CENTS
        b.low_score_capped = True
    if limit > settings.CREDIT_LIMIT_CEILING_CENTS:
        limit = settings.CREDIT_LIMIT_CEILING_CENTS
        b.ceiling_capped = True
    b.personal_limit = limit
    b.final_limit = min(limit, max(0, operational_cash))
    return b


def account_age_days(created_at: datetime, now: datetime) -> int:
    return max(0, (now - created_at).days)


def is_elite(
    profile: ExtendedProfile, now: datetime, params: ExtendedScoringParams
) -> bool:
    return (
        profile.score >= params.elite_min_score
        and account_age_days(profile.created_at, now) >= params.elite_min_age_days
        and profile.late_installments_365d == 0
        and profile.profit_pool > 0
    )


def total_spent(profile: ExtendedProfile, params: ExtendedScoringParams) -> int:
    """Money that left the member for good: purchases, platform fees, quota upkeep."""
    return (
        profile.marketplace_spent
        + profile.platform_spent
        + profile.active_quota_count * params.quota_maintenance_cents
    )


def extended_bonus_bps(
    profile: ExtendedProfile, now: datetime, params: ExtendedScoringParams
) -> int:
    bonus = profile.score * params.score_bonus_bps_per_1000 // 1000
    if profile.membership_type == "PRO":
        bonus += params.pro_bonus_bps
    if is_elite(profile, now, params):
        bonus += params.elite_bonus_bps
    return bonus


def extended_limit(
    profile: ExtendedProfile,
    operational_cash: int,
    now: datetime,
    params: ExtendedScoringParams,
) -> int:
    """spent*(spent_factor+bonus) + quotas*(quota_factor+bonus), cash-clamped."""
    bonus = extended_bonus_bps(profile, now, params)
    spent_part = total_spent(profile, params) * (params.spent_factor_bps + bonus)
    quota_part = profile.total_quotas_value * (params.quota_factor_bps + bonus)
    raw = (spent_part + quota_part) // BPS_DENOMINATOR
    return min(raw, max(0, operational_cash))
