"""Calendar month bucketing helpers shared by every report."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Union

import pandas as pd

from core.errors import ReportValidationError

__all__ = [
    "DateLike",
    "DateRange",
    "to_period",
    "month_key",
    "parse_month_key",
    "month_range",
    "month_bounds",
    "year_range",
    "trailing_months",
    "window_start",
    "add_months",
    "month_index",
    "key_from_index",
    "previous_month",
    "next_month",
    "future_months",
]

DateLike = Union[date, datetime, pd.Timestamp, pd.Period, str]

_MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    @property
    def bounds(self) -> tuple[str, str]:
        return self.start.isoformat(), self.end.isoformat()

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def parse_month_key(key: str) -> tuple[int, int]:
    """Return ``(year, month)`` for a ``YYYY-MM`` key.

    Raises
    ------
    ReportValidationError
        If the key is not zero padded ``YYYY-MM`` or the month is outside 1-12.
    """

    match = _MONTH_KEY.match(str(key).strip()) if key is not None else None
    if match is None:
        raise ReportValidationError(f"Invalid month key: {key!r} (expected YYYY-MM)")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ReportValidationError(f"Invalid month key: {key!r} (month out of range)")
    return year, month


def to_period(value: DateLike) -> pd.Period:
    """Coerce a date-like value (or month key) to a monthly ``pd.Period``."""

    if isinstance(value, pd.Period):
        return value.asfreq("M")
    if isinstance(value, str) and _MONTH_KEY.match(value.strip()):
        year, month = parse_month_key(value)
        return pd.Period(year=year, month=month, freq="M")
    try:
        timestamp = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise ReportValidationError(f"Invalid date: {value!r}") from exc
    if pd.isna(timestamp):
        raise ReportValidationError(f"Invalid date: {value!r}")
    return timestamp.to_period("M")


def month_key(value: DateLike) -> str:
    period = to_period(value)
    return f"{period.year:04d}-{period.month:02d}"


def month_range(year: int, month_index0: int) -> DateRange:
    """First and last calendar day of a month given a zero-based month index."""

    if not 0 <= month_index0 <= 11:
        raise ReportValidationError(f"Month index out of range: {month_index0}")
    period = pd.Period(year=year, month=month_index0 + 1, freq="M")
    return DateRange(period.start_time.date(), period.end_time.date())


def month_bounds(key: DateLike) -> DateRange:
    period = to_period(key)
    return month_range(period.year, period.month - 1)


def year_range(year: int) -> DateRange:
    return DateRange(date(year, 1, 1), date(year, 12, 31))


def trailing_months(n: int, from_: DateLike) -> list[str]:
    """Return ``n`` month keys, oldest first, ending at ``from_``'s month."""

    if n < 0:
        raise ReportValidationError(f"Window length must be non-negative, got {n}")
    anchor = to_period(from_)
    return [month_key(anchor - offset) for offset in range(n - 1, -1, -1)]


def window_start(n: int, from_: DateLike) -> date:
    """First day of the oldest month in a trailing ``n`` month window."""

    anchor = to_period(from_) - max(n - 1, 0)
    return anchor.start_time.date()


def add_months(year: int, month: int, delta: int) -> tuple[int, int]:
    """Shift a 1-based ``(year, month)`` by ``delta`` months, normalising overflow."""

    new_year, zero_based = divmod(year * 12 + (month - 1) + delta, 12)
    return new_year, zero_based + 1


def month_index(value: DateLike) -> int:
    """Integer month ordinal (``year * 12 + month``) for exact gap arithmetic."""

    period = to_period(value)
    return period.year * 12 + period.month


def key_from_index(index: int) -> str:
    year, zero_based = divmod(index - 1, 12)
    return f"{year:04d}-{zero_based + 1:02d}"


def previous_month(reference: DateLike) -> str:
    return month_key(to_period(reference) - 1)


def next_month(reference: DateLike) -> str:
    return month_key(to_period(reference) + 1)


def future_months(last_month: DateLike, count: int) -> list[str]:
    """``count`` month keys following ``last_month``."""

    period = to_period(last_month)
    year, month = period.year, period.month
    months: list[str] = []
    for step in range(1, count + 1):
        future_year, future_month = add_months(year, month, step)
        months.append(f"{future_year:04d}-{future_month:02d}")
    return months
