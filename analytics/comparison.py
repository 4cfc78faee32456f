"""Month-to-month comparative diffing of spend per category or item."""

from __future__ import annotations

from typing import Any, Hashable

import pandas as pd

from core.formatting import to_money
from core.models import ComparisonMeta, ComparisonReport, ComparisonRow

__all__ = [
    "diff_percent",
    "order_by_change",
    "compare_periods",
    "compare_categories",
    "compare_items",
]


def _key(value: Any) -> Hashable:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if hasattr(value, "item"):
        value = value.item()
    return value


def _period_totals(
    frame: pd.DataFrame,
    key_column: str,
    name_column: str,
    value_column: str,
) -> dict[Hashable, tuple[str, float]]:
    if frame.empty:
        return {}
    # A missing key is its own group; the latest name seen labels it.
    grouped = frame.groupby(key_column, dropna=False, sort=False).agg(
        name=(name_column, "last"),
        total=(value_column, "sum"),
    )
    return {
        _key(key): (str(name), float(total))
        for key, name, total in zip(grouped.index, grouped["name"], grouped["total"])
    }


def diff_percent(total1: float, total2: float) -> float:
    """Relative change from ``total1`` to ``total2`` in percent.

    New spend (nothing in the first period) counts as a 100% increase and two
    empty periods as no change.
    """

    if total1 == 0:
        return 100.0 if total2 > 0 else 0.0
    return (total2 - total1) / total1 * 100


def order_by_change(rows: list[ComparisonRow], name_field: str) -> list[ComparisonRow]:
    """Increases (largest first), then unchanged (by name), then decreases (largest drop first)."""

    def name_of(row: ComparisonRow) -> str:
        return str(row.get(name_field, "")).casefold()  # type: ignore[misc]

    increased = sorted((r for r in rows if r["diff"] > 0), key=lambda r: (-r["diff"], name_of(r)))
    unchanged = sorted((r for r in rows if r["diff"] == 0), key=name_of)
    decreased = sorted((r for r in rows if r["diff"] < 0), key=lambda r: (r["diff"], name_of(r)))
    return [*increased, *unchanged, *decreased]


def compare_periods(
    period1: pd.DataFrame,
    period2: pd.DataFrame,
    *,
    month1: str,
    month2: str,
    key_column: str,
    name_column: str,
    value_column: str,
) -> ComparisonReport:
    """Diff per-key totals between two months.

    Parameters
    ----------
    period1, period2:
        Prepared rows already restricted to each month.
    month1, month2:
        Month keys echoed back in ``meta``.
    key_column, name_column:
        Grouping key and its display name; both are copied onto each row.
        The name seen in the second period wins when both periods have one.
    value_column:
        Numeric column to total.

    Returns
    -------
    ComparisonReport
        ``meta`` with both period totals and ``data`` rows ordered by change.
    """

    first = _period_totals(period1, key_column, name_column, value_column)
    second = _period_totals(period2, key_column, name_column, value_column)

    rows: list[ComparisonRow] = []
    for key in set(first) | set(second):
        name = second[key][0] if key in second else first[key][0]
        total1 = to_money(first.get(key, (name, 0.0))[1])
        total2 = to_money(second.get(key, (name, 0.0))[1])
        diff = to_money(total2 - total1)
        row: ComparisonRow = {
            key_column: key,  # type: ignore[misc]
            name_column: name,  # type: ignore[misc]
            "month1_total": total1,
            "month2_total": total2,
            "diff": diff,
            "diff_percent": to_money(diff_percent(total1, total2)),
        }
        rows.append(row)

    meta: ComparisonMeta = {
        "month1": month1,
        "month2": month2,
        "month1_total": to_money(sum(total for _, total in first.values())),
        "month2_total": to_money(sum(total for _, total in second.values())),
    }
    return {"meta": meta, "data": order_by_change(rows, name_column)}


def compare_categories(
    expenses1: pd.DataFrame,
    expenses2: pd.DataFrame,
    *,
    month1: str,
    month2: str,
) -> ComparisonReport:
    return compare_periods(
        expenses1,
        expenses2,
        month1=month1,
        month2=month2,
        key_column="category_id",
        name_column="category_name",
        value_column="amount",
    )


def compare_items(
    items1: pd.DataFrame,
    items2: pd.DataFrame,
    *,
    month1: str,
    month2: str,
) -> ComparisonReport:
    """Item spend diff valued with tax-inclusive line amounts."""

    return compare_periods(
        items1,
        items2,
        month1=month1,
        month2=month2,
        key_column="item_id",
        name_column="item_name",
        value_column="line_amount",
    )
