"""Unit tests for the extended (spend-weighted) credit limit."""

from datetime import UTC, datetime, timedelta

from src.mc_credit.domain.limit import (
    extended_bonus_bps,
    extended_limit,
    is_elite,
    total_spent,
)
from src.mc_credit.domain.models import ExtendedProfile, ExtendedScoringParams

NOW = datetime(2026, 10, 1, tzinfo=UTC)
PARAMS = ExtendedScoringParams()


def _profile(**overrides: object) -> ExtendedProfile:
    base: dict[str, object] = {
        "member_id": "member-1",
        "score": 500,
        "created_at": NOW - timedelta(days=10),
        "membership_type": "FREE",
        "total_quotas_value": 4_000,
        "active_quota_count": 1,
        "pending_quota_count": 0,
        "overdue_loan_count": 0,
        "marketplace_spent": 10_000,
        "platform_spent": 0,
        "purchases_count": 2,
        "sales_count": 0,
        "late_installments_365d": 0,
        "active_guarantees": 0,
        "profit_pool": 0,
    }
    base.update(overrides)
    return ExtendedProfile(**base)  # type: ignore[arg-type]


def test_total_spent_includes_quota_maintenance() -> None:
    assert total_spent(_profile(), PARAMS) == 10_800


def test_score_bonus() -> None:
    assert extended_bonus_bps(_profile(), NOW, PARAMS) == 500


def test_free_member_limit() -> None:
    # 10800 * 0.75 + 4000 * 0.75
    assert extended_limit(_profile(), 1_000_000, NOW, PARAMS) == 11_100


def test_pro_member_gets_bonus() -> None:
    # 10800 * 0.80 + 4000 * 0.80
    assert extended_limit(_profile(membership_type="PRO"), 1_000_000, NOW, PARAMS) == 11_840


def test_limit_clamped_to_cash() -> None:
    assert extended_limit(_profile(), 5_000, NOW, PARAMS) == 5_000
    assert extended_limit(_profile(), -1, NOW, PARAMS) == 0


def test_elite_requires_age_score_punctuality_and_profit() -> None:
    elite = _profile(score=960, created_at=NOW - timedelta(days=120), profit_pool=1)
    assert is_elite(elite, NOW, PARAMS)
    assert not is_elite(_profile(score=960, created_at=NOW - timedelta(days=30), profit_pool=1), NOW, PARAMS)
    assert not is_elite(
        _profile(score=960, created_at=NOW - timedelta(days=120), profit_pool=1, late_installments_365d=1),
        NOW,
        PARAMS,
    )
    assert not is_elite(_profile(score=960, created_at=NOW - timedelta(days=120)), NOW, PARAMS)


def test_elite_bonus_added() -> None:
    elite = _profile(score=1000, created_at=NOW - timedelta(days=120), profit_pool=1)
    assert extended_bonus_bps(elite, NOW, PARAMS) == 1000 + 500
