"""Grouped rollups over prepared transaction frames."""

from __future__ import annotations

from typing import Any, Iterable, Sequence, Union

import pandas as pd

from analytics.frames import STABILITY_TYPES, in_months
from core.formatting import to_money
from core.models import AccountBalance, CategoryTotal, MonthlyFlow, StabilityTotal

__all__ = [
    "rollup",
    "combine_rollups",
    "monthly_flows",
    "category_totals",
    "category_trend",
    "monthly_balance",
    "saving_trend",
    "monthly_income_expense",
    "yearly_category_variations",
    "account_balances",
    "expense_by_stability",
    "top_variable_categories",
]

Keys = Union[str, Sequence[str]]

_FLOW_COLUMNS = ["month", "income", "expense", "saving"]


def _keys(by: Keys) -> list[str]:
    return [by] if isinstance(by, str) else list(by)


def _empty_rollup(keys: list[str]) -> pd.DataFrame:
    frame = pd.DataFrame(columns=[*keys, "total", "count"])
    return frame.astype({"total": float, "count": int})


def _scalar(value: Any) -> Any:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if hasattr(value, "item"):
        return value.item()
    return value


def rollup(frame: pd.DataFrame, by: Keys, value: str = "amount") -> pd.DataFrame:
    """Sum and count ``value`` per group.

    Parameters
    ----------
    frame:
        Prepared rows already filtered to the user and date range of interest.
    by:
        Column name or names to group on. Missing keys form their own group
        so that no row is lost from the totals.
    value:
        Numeric column to sum.

    Returns
    -------
    pandas.DataFrame
        One row per group with ``total`` and ``count`` columns, ordered by key.
    """

    keys = _keys(by)
    if frame.empty:
        return _empty_rollup(keys)

    grouped = frame.groupby(keys, dropna=False, sort=True)[value].agg(total="sum", count="size")
    result = grouped.reset_index()
    result["total"] = result["total"].astype(float)
    result["count"] = result["count"].astype(int)
    return result


def combine_rollups(parts: Iterable[pd.DataFrame], by: Keys) -> pd.DataFrame:
    """Merge partial rollups; the result equals the rollup of the combined rows."""

    keys = _keys(by)
    frames = [part for part in parts if not part.empty]
    if not frames:
        return _empty_rollup(keys)

    stacked = pd.concat(frames, ignore_index=True)
    merged = (
        stacked.groupby(keys, dropna=False, sort=True)
        .agg(total=("total", "sum"), count=("count", "sum"))
        .reset_index()
    )
    merged["total"] = merged["total"].astype(float)
    merged["count"] = merged["count"].astype(int)
    return merged


def monthly_flows(frame: pd.DataFrame) -> pd.DataFrame:
    """Income, expense and saving per month key, oldest first.

    Only dated income and expense rows are bucketed; transfers and undated
    rows do not move either side.
    """

    dated = frame[frame["month"].notna() & frame["type"].isin(["income", "expense"])]
    if dated.empty:
        return pd.DataFrame(columns=_FLOW_COLUMNS).astype(
            {"income": float, "expense": float, "saving": float}
        )

    flows = dated.groupby(["month", "type"])["amount"].sum().unstack("type", fill_value=0.0)
    flows = flows.reindex(columns=["income", "expense"], fill_value=0.0).astype(float)
    flows["saving"] = flows["income"] - flows["expense"]
    flows = flows.sort_index().reset_index()
    flows.columns.name = None
    return flows[_FLOW_COLUMNS]


def category_totals(expenses: pd.DataFrame) -> list[CategoryTotal]:
    """Spend per category name, largest first."""

    totals = rollup(expenses, "category_name")
    rows = [
        (str(record["category_name"]), float(record["total"]))
        for record in totals.to_dict(orient="records")
    ]
    rows.sort(key=lambda pair: (-pair[1], pair[0]))
    return [{"category": name, "total": to_money(total)} for name, total in rows]


def category_trend(expenses: pd.DataFrame, months: Sequence[str]) -> list[dict[str, Any]]:
    """One row per month in ``months`` with a column per category."""

    trend: dict[str, dict[str, Any]] = {month: {"month": month} for month in months}
    window = in_months(expenses, months)
    for record in rollup(window, ["month", "category_name"]).to_dict(orient="records"):
        trend[record["month"]][str(record["category_name"])] = to_money(record["total"])
    return [trend[month] for month in months]


def monthly_balance(frame: pd.DataFrame) -> list[dict[str, Any]]:
    flows = monthly_flows(frame)
    return [
        {"month": record["month"], "balance": to_money(record["saving"])}
        for record in flows.to_dict(orient="records")
    ]


def saving_trend(frame: pd.DataFrame) -> list[MonthlyFlow]:
    flows = monthly_flows(frame)
    return [
        {
            "month": record["month"],
            "income": to_money(record["income"]),
            "expense": to_money(record["expense"]),
            "saving": to_money(record["saving"]),
        }
        for record in flows.to_dict(orient="records")
    ]


def monthly_income_expense(frame: pd.DataFrame) -> list[dict[str, Any]]:
    flows = monthly_flows(frame)
    return [
        {
            "month": record["month"],
            "income": to_money(record["income"]),
            "expense": to_money(record["expense"]),
        }
        for record in flows.to_dict(orient="records")
    ]


def yearly_category_variations(expenses: pd.DataFrame) -> dict[str, list[dict[str, Any]]]:
    """Monthly spend series keyed by category id (or placeholder name when missing)."""

    dated = expenses[expenses["month"].notna()].copy()
    dated["category_key"] = [
        str(_scalar(category_id)) if _scalar(category_id) is not None else name
        for category_id, name in zip(dated["category_id"], dated["category_name"])
    ]

    variations: dict[str, list[dict[str, Any]]] = {}
    for record in rollup(dated, ["category_key", "month"]).to_dict(orient="records"):
        variations.setdefault(record["category_key"], []).append(
            {"month": record["month"], "amount": to_money(record["total"])}
        )
    return variations


def account_balances(frame: pd.DataFrame) -> list[AccountBalance]:
    """Net balance per account (income minus expense), highest first."""

    if frame.empty:
        return []

    signed = frame[frame["type"].isin(["income", "expense"])].copy()
    signed["signed_amount"] = signed["amount"].where(signed["type"] == "income", -signed["amount"])

    balances: list[AccountBalance] = []
    grouped = signed.groupby(["account_id", "account_name"], dropna=False, sort=True)["signed_amount"].sum()
    for (account_id, name), balance in grouped.items():
        balances.append({"account_id": _scalar(account_id), "name": str(name), "balance": float(balance)})

    balances.sort(key=lambda row: (-row["balance"], row["name"]))
    for row in balances:
        row["balance"] = to_money(row["balance"])
    return balances


def expense_by_stability(expenses: pd.DataFrame) -> list[StabilityTotal]:
    """Spend per stability type; the three known types are always present."""

    totals = {stability: 0.0 for stability in STABILITY_TYPES}
    for record in rollup(expenses, "stability_type").to_dict(orient="records"):
        totals[str(record["stability_type"])] = totals.get(str(record["stability_type"]), 0.0) + float(
            record["total"]
        )
    return [{"type": stability, "total": to_money(total)} for stability, total in totals.items()]


def top_variable_categories(expenses: pd.DataFrame, limit: int = 5) -> list[CategoryTotal]:
    variable = expenses[expenses["stability_type"] == "variable"]
    return category_totals(variable)[:limit]
