"""Tests for calendar month bucketing."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from analytics.periods import (
    add_months,
    future_months,
    key_from_index,
    month_bounds,
    month_index,
    month_key,
    month_range,
    next_month,
    parse_month_key,
    previous_month,
    trailing_months,
    window_start,
    year_range,
)
from core.errors import ReportValidationError


def test_month_key_is_zero_padded():
    assert month_key(date(2025, 3, 9)) == "2025-03"
    assert month_key(datetime(2024, 11, 30, 23, 59)) == "2024-11"
    assert month_key("2025-01-31") == "2025-01"


def test_month_range_handles_leap_years():
    leap = month_range(2024, 1)
    assert leap.start == date(2024, 2, 1)
    assert leap.end == date(2024, 2, 29)
    assert month_range(2023, 1).end == date(2023, 2, 28)
    assert month_range(2025, 11).end == date(2025, 12, 31)


def test_month_range_rejects_out_of_range_index():
    with pytest.raises(ReportValidationError):
        month_range(2025, 12)


def test_year_range_bounds():
    assert year_range(2025).bounds == ("2025-01-01", "2025-12-31")


def test_trailing_months_are_oldest_first_and_cross_years():
    assert trailing_months(3, date(2025, 1, 15)) == ["2024-11", "2024-12", "2025-01"]
    assert trailing_months(1, "2025-06") == ["2025-06"]
    assert trailing_months(0, "2025-06") == []


def test_window_start_is_first_day_of_oldest_month():
    assert window_start(6, date(2025, 3, 15)) == date(2024, 10, 1)


@pytest.mark.parametrize(
    ("year", "month", "delta", "expected"),
    [
        (2024, 12, 1, (2025, 1)),
        (2025, 1, -1, (2024, 12)),
        (2024, 13, 0, (2025, 1)),
        (2025, 3, 24, (2027, 3)),
    ],
)
def test_add_months_normalises_overflow(year, month, delta, expected):
    assert add_months(year, month, delta) == expected


def test_parse_month_key_validates_input():
    assert parse_month_key("2025-07") == (2025, 7)
    for bad in ("2025-13", "2025-7", "July", None):
        with pytest.raises(ReportValidationError):
            parse_month_key(bad)


def test_month_index_supports_exact_gap_arithmetic():
    assert month_index("2025-03") - month_index("2024-12") == 3
    assert key_from_index(month_index("2025-12")) == "2025-12"
    assert key_from_index(month_index("2025-12") + 1) == "2026-01"


def test_neighbouring_months():
    assert next_month("2024-12") == "2025-01"
    assert previous_month(date(2025, 1, 10)) == "2024-12"
    assert future_months("2025-11", 3) == ["2025-12", "2026-01", "2026-02"]
    assert month_bounds("2025-04").end == date(2025, 4, 30)
