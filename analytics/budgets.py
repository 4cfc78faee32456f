"""Budget-versus-actual comparisons and goal progress."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

import pandas as pd

from core.errors import ReportValidationError
from core.formatting import coerce_float, to_money
from core.models import BudgetHistoryLine, BudgetLine, BudgetMonthSummary, GoalProgress, OverBudgetLine

__all__ = [
    "FIELD_STYLES",
    "check_field_style",
    "spend_by_month_category",
    "budget_vs_actual",
    "overbudget_categories",
    "budget_history",
    "budget_summary_by_month",
    "goals_progress",
]

# Two consumers read the same computation under different field names.
FIELD_STYLES: dict[str, tuple[tuple[str, str], ...]] = {
    "english": (("limit", "spent"),),
    "spanish": (("presupuesto", "gastado"),),
    "both": (("limit", "spent"), ("presupuesto", "gastado")),
}


def check_field_style(field_style: str) -> None:
    if field_style not in FIELD_STYLES:
        raise ReportValidationError(f"Unknown budget field style: {field_style!r}")


def _category_key(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    return str(value)


def spend_by_month_category(expenses: pd.DataFrame) -> dict[tuple[str, str], float]:
    """Actual spend keyed by ``(month, category_id)``.

    Spend without a category id cannot match a budget row and is left out.
    """

    keys = expenses["category_id"].map(_category_key)
    matched = expenses[expenses["month"].notna() & keys.notna()]
    if matched.empty:
        return {}
    totals = matched.groupby([matched["month"], keys.loc[matched.index]], sort=False)["amount"].sum()
    return {(month, category): float(amount) for (month, category), amount in totals.items()}


def _budget_pairs(budgets: pd.DataFrame, expenses: pd.DataFrame, month: Optional[str] = None):
    scoped = budgets if month is None else budgets[budgets["month"] == month]
    spent = spend_by_month_category(expenses)
    for record in scoped.to_dict(orient="records"):
        key = _category_key(record["category_id"])
        amount = spent.get((record["month"], key), 0.0) if key is not None else 0.0
        yield record, float(record["limit_amount"]), amount


def budget_vs_actual(
    budgets: pd.DataFrame,
    expenses: pd.DataFrame,
    month: str,
    *,
    field_style: str = "english",
) -> list[BudgetLine]:
    """Every budgeted category of ``month`` with its actual spend.

    Parameters
    ----------
    budgets:
        Prepared budget rows (see :func:`analytics.frames.prepare_budgets`).
    expenses:
        Prepared expense rows covering ``month``.
    month:
        ``YYYY-MM`` key being reported.
    field_style:
        ``"english"`` for ``limit``/``spent``, ``"spanish"`` for
        ``presupuesto``/``gastado`` or ``"both"`` to emit both aliases.
    """

    check_field_style(field_style)

    lines: list[BudgetLine] = []
    for record, limit, spent in _budget_pairs(budgets, expenses, month):
        line: BudgetLine = {
            "category_id": record["category_id"],
            "category": str(record["category_name"]),
            "month": month,
        }
        for limit_key, spent_key in FIELD_STYLES[field_style]:
            line[limit_key] = to_money(limit)  # type: ignore[literal-required]
            line[spent_key] = to_money(spent)  # type: ignore[literal-required]
        lines.append(line)
    return lines


def overbudget_categories(
    budgets: pd.DataFrame,
    expenses: pd.DataFrame,
    month: str,
    *,
    limit: int = 3,
) -> list[OverBudgetLine]:
    """Budgeted categories whose spend exceeds the limit, worst first."""

    overs: list[tuple[float, str, float, float]] = []
    for record, budget_limit, spent in _budget_pairs(budgets, expenses, month):
        over = spent - budget_limit
        if over > 0:
            overs.append((over, str(record["category_name"]), spent, budget_limit))

    overs.sort(key=lambda entry: (-entry[0], entry[1]))
    return [
        {"category": name, "spent": to_money(spent), "limit": to_money(budget_limit), "over": to_money(over)}
        for over, name, spent, budget_limit in overs[:limit]
    ]


def budget_history(budgets: pd.DataFrame, expenses: pd.DataFrame) -> list[BudgetHistoryLine]:
    lines: list[BudgetHistoryLine] = []
    for record, limit, spent in _budget_pairs(budgets, expenses):
        if record["month"] is None:
            continue
        lines.append(
            {
                "month": record["month"],
                "category": str(record["category_name"]),
                "budgeted": to_money(limit),
                "spent": to_money(spent),
            }
        )
    lines.sort(key=lambda line: (line["month"], line["category"]))
    return lines


def budget_summary_by_month(
    budgets: pd.DataFrame,
    expenses: pd.DataFrame,
    year: int,
) -> list[BudgetMonthSummary]:
    """Total budgeted versus total spent for each month of ``year``."""

    months = [f"{year:04d}-{month:02d}" for month in range(1, 13)]
    budgeted = budgets[budgets["month"].isin(months)].groupby("month")["limit_amount"].sum()
    in_year = expenses[expenses["month"].isin(months)]
    spent = in_year.groupby("month")["amount"].sum()
    return [
        {
            "month": month,
            "budgeted": to_money(budgeted.get(month, 0.0)),
            "spent": to_money(spent.get(month, 0.0)),
        }
        for month in months
    ]


def goals_progress(goals: Iterable[Mapping[str, Any]]) -> list[GoalProgress]:
    """Percentage progress per goal, capped at 100."""

    rows: list[GoalProgress] = []
    for goal in goals:
        current = coerce_float(goal.get("current_amount"))
        target = coerce_float(goal.get("target_amount"))
        progress = min(current / target * 100, 100.0) if target > 0 else 0.0
        rows.append(
            {
                "name": str(goal.get("name") or ""),
                "current": to_money(current),
                "target": to_money(target),
                "progress": to_money(progress),
            }
        )
    return rows
