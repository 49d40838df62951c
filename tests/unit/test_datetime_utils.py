"""Tests for mc_common.datetime_utils."""

from datetime import UTC, datetime

from src.mc_common.datetime_utils import add_months, utc_now


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo is not None


def test_add_months_same_day() -> None:
    start = datetime(2026, 3, 15, 10, 30, tzinfo=UTC)
    assert add_months(start, 1) == datetime(2026, 4, 15, 10, 30, tzinfo=UTC)


def test_add_months_clamps_to_month_end() -> None:
    start = datetime(2026, 1, 31, tzinfo=UTC)
    assert add_months(start, 1) == datetime(2026, 2, 28, tzinfo=UTC)
    assert add_months(start, 2) == datetime(2026, 3, 31, tzinfo=UTC)


def test_add_months_leap_year() -> None:
    start = datetime(2028, 1, 31, tzinfo=UTC)
    assert add_months(start, 1) == datetime(2028, 2, 29, tzinfo=UTC)


def test_add_months_rolls_year() -> None:
    start = datetime(2026, 11, 30, tzinfo=UTC)
    assert add_months(start, 3) == datetime(2027, 2, 28, tzinfo=UTC)
    assert add_months(start, 14) == datetime(2028, 1, 30, tzinfo=UTC)
