"""Unit tests for installment schedule generation."""

from datetime import UTC, datetime

import pytest

from src.mc_loans.domain.schedule import build_schedule

START = datetime(2026, 1, 31, 12, 0, tzinfo=UTC)


def test_interest_and_remainder_on_last_line() -> None:
    schedule = build_schedule(10_000, 3, 150, 0, START)
    # ceil(10000 * 1.5% * 3) = 450
    assert schedule.interest == 450
    assert schedule.total_repayment == 10_450
    assert [line.amount for line in schedule.lines] == [3_483, 3_483, 3_484]


def test_lines_sum_to_total() -> None:
    for n in range(1, 25):
        schedule = build_schedule(99_999, n, 150, 777, START)
        assert sum(line.amount for line in schedule.lines) == schedule.total_repayment


def test_delivery_fee_financed_without_interest() -> None:
    schedule = build_schedule(10_000, 2, 150, 1_500, START)
    assert schedule.interest == 300
    assert schedule.total_repayment == 11_800
    assert schedule.amount == 11_500


def test_zero_rate() -> None:
    schedule = build_schedule(9_000, 3, 0, 0, START)
    assert schedule.interest == 0
    assert [line.amount for line in schedule.lines] == [3_000, 3_000, 3_000]


def test_due_dates_are_monthly_and_clamped() -> None:
    schedule = build_schedule(10_000, 3, 150, 0, START)
    assert [line.number for line in schedule.lines] == [1, 2, 3]
    assert schedule.lines[0].due_date == datetime(2026, 2, 28, 12, 0, tzinfo=UTC)
    assert schedule.lines[1].due_date == datetime(2026, 3, 31, 12, 0, tzinfo=UTC)
    assert schedule.lines[2].due_date == datetime(2026, 4, 30, 12, 0, tzinfo=UTC)


def test_rejects_zero_installments() -> None:
    with pytest.raises(ValueError, match="installments"):
        build_schedule(10_000, 0, 150, 0, START)


def test_rejects_negative_principal() -> None:
    with pytest.raises(ValueError):
        build_schedule(-1, 1, 150, 0, START)
