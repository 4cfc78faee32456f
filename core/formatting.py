"""Coercion and output formatting helpers for ledger reports."""

from __future__ import annotations

import math
from typing import Any, Mapping

__all__ = ["coerce_float", "coerce_bool", "to_money", "safe_ratio", "relative_change", "embedded"]


def coerce_float(value: Any, default: float = 0.0) -> float:
    """Return ``value`` as a float, falling back to ``default`` for blanks."""

    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result):
        return default
    return result


def coerce_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "t", "1", "yes", "y"}:
            return True
        if lowered in {"false", "f", "0", "no", "n", ""}:
            return False
        return default
    if isinstance(value, float) and math.isnan(value):
        return default
    return bool(value)


def to_money(value: Any) -> float:
    """Round a monetary amount to cents at the report boundary."""

    rounded = round(coerce_float(value), 2)
    # Avoid emitting -0.0 for values that round to nothing.
    return rounded + 0.0 if rounded != 0 else 0.0


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    if not denominator:
        return default
    return numerator / denominator


def relative_change(current: float, previous: float) -> float:
    """Percentage change against ``previous``, dividing by 1 when it is zero."""

    return (current - previous) / (previous or 1) * 100


def embedded(row: Mapping[str, Any], *names: str) -> Mapping[str, Any]:
    """Return an embedded relation, accepting either an object or a one-item list."""

    for name in names:
        value = row.get(name)
        if isinstance(value, Mapping):
            return value
        if isinstance(value, (list, tuple)) and value and isinstance(value[0], Mapping):
            return value[0]
    return {}
