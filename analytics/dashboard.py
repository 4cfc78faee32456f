"""Headline figures for the monthly dashboard."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

import pandas as pd

from analytics.budgets import spend_by_month_category
from analytics.frames import expenses_only, incomes_only
from core.formatting import coerce_float, relative_change, safe_ratio, to_money
from core.models import CategoryChange, CategoryTotal, DashboardSummary

__all__ = ["saving_rate", "category_changes", "monthly_summary"]


def saving_rate(income: float, expense: float) -> float:
    """Share of income left after expenses, in percent; 0 without income."""

    if income <= 0:
        return 0.0
    return (1 - expense / income) * 100


def category_changes(current: pd.DataFrame, previous: pd.DataFrame) -> list[tuple[str, float]]:
    """Percentage change of spend per category name, largest increase first."""

    now = current.groupby("category_name")["amount"].sum()
    before = previous.groupby("category_name")["amount"].sum()
    names = sorted(set(now.index) | set(before.index))
    changes = [
        (str(name), relative_change(float(now.get(name, 0.0)), float(before.get(name, 0.0))))
        for name in names
    ]
    changes.sort(key=lambda change: (-change[1], change[0]))
    return changes


def _change(entry: Optional[tuple[str, float]]) -> Optional[CategoryChange]:
    if entry is None:
        return None
    return {"category": entry[0], "percent": to_money(entry[1])}


def monthly_summary(
    current: pd.DataFrame,
    previous: pd.DataFrame,
    *,
    month: str,
    days_elapsed: int,
    recent: pd.DataFrame,
    lookback_months: int,
    year_to_date: pd.DataFrame,
    budgets: pd.DataFrame,
    goals: Iterable[Mapping[str, Any]],
) -> DashboardSummary:
    """Assemble the dashboard figures for ``month``.

    Parameters
    ----------
    current, previous:
        Prepared transactions of the reported month and of the month before.
    month:
        Reported month key.
    days_elapsed:
        Days of ``month`` already lived (the full month length for past months).
    recent:
        Prepared transactions of the ``lookback_months`` months before ``month``;
        only fixed and variable expenses feed the monthly expense average.
    year_to_date:
        Prepared transactions from January up to the end of ``month``.
    budgets:
        Prepared budget rows of ``month``.
    goals:
        Raw goal rows.
    """

    income = float(incomes_only(current)["amount"].sum())
    expenses = expenses_only(current)
    expense = float(expenses["amount"].sum())
    previous_income = float(incomes_only(previous)["amount"].sum())
    previous_expense = float(expenses_only(previous)["amount"].sum())

    rate = saving_rate(income, expense)
    recent_expenses = expenses_only(recent)
    steady = recent_expenses[recent_expenses["stability_type"].isin(["fixed", "variable"])]

    top_category: Optional[CategoryTotal] = None
    if not expenses.empty:
        per_category = expenses.groupby("category_name")["amount"].sum()
        ranked = sorted(per_category.items(), key=lambda pair: (-pair[1], str(pair[0])))
        top_category = {"category": str(ranked[0][0]), "total": to_money(ranked[0][1])}

    changes = category_changes(expenses, expenses_only(previous))

    budgeted_ids = {str(value) for value in budgets["category_id"].dropna()}
    budgeted_expense = sum(
        amount for (_, category), amount in spend_by_month_category(expenses).items() if category in budgeted_ids
    )
    monthly_budget = float(budgets["limit_amount"].sum())

    goal_rows = list(goals)
    completed = sum(
        1
        for goal in goal_rows
        if coerce_float(goal.get("current_amount")) >= coerce_float(goal.get("target_amount"))
    )

    ytd_income = float(incomes_only(year_to_date)["amount"].sum())
    ytd_expense = float(expenses_only(year_to_date)["amount"].sum())

    return {
        "month": month,
        "total_income": to_money(income),
        "total_expense": to_money(expense),
        "balance": to_money(income - expense),
        "saving_rate": to_money(rate),
        "saving_rate_diff": to_money(rate - saving_rate(previous_income, previous_expense)),
        "average_daily_expense": to_money(safe_ratio(expense, days_elapsed)),
        "average_monthly_expense": to_money(safe_ratio(float(steady["amount"].sum()), lookback_months)),
        "income_diff_percent": to_money(relative_change(income, previous_income)),
        "expense_diff_percent": to_money(relative_change(expense, previous_expense)),
        "total_transactions": int(len(current)),
        "completed_goals": completed,
        "total_goals": len(goal_rows),
        "top_category": top_category,
        "most_increased_category": _change(changes[0] if changes else None),
        "most_decreased_category": _change(changes[-1] if changes else None),
        "monthly_budget": to_money(monthly_budget),
        "budgeted_expense": to_money(budgeted_expense),
        "budget_balance": to_money(monthly_budget - budgeted_expense),
        "ytd_income": to_money(ytd_income),
        "ytd_expense": to_money(ytd_expense),
        "ytd_saving": to_money(ytd_income - ytd_expense),
    }
