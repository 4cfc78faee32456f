"""Tests for budget-vs-actual reporting and goal progress."""

from __future__ import annotations

import pandas as pd
import pytest

from analytics.budgets import (
    budget_history,
    budget_summary_by_month,
    budget_vs_actual,
    check_field_style,
    goals_progress,
    overbudget_categories,
    spend_by_month_category,
)
from analytics.frames import expenses_only, prepare_budgets, prepare_transactions
from conftest import txn
from core.errors import ReportValidationError


@pytest.fixture()
def budgets():
    return prepare_budgets(
        [
            {"id": 1, "category_id": 1, "month": "2025-03", "limit_amount": 100, "categories": {"name": "Food"}},
            {"id": 2, "category_id": 2, "month": "2025-03", "limit_amount": 500, "categories": {"name": "Rent"}},
            {"id": 3, "category_id": 3, "month": "2025-03", "limit_amount": 50, "categories": {"name": "Travel"}},
            {"id": 4, "category_id": 1, "month": "2025-02", "limit_amount": 90, "categories": {"name": "Food"}},
        ]
    )


@pytest.fixture()
def expenses():
    return expenses_only(
        prepare_transactions(
            [
                txn(1, "expense", 150, "2025-03-02", 1),
                txn(2, "expense", 520, "2025-03-01", 2),
                txn(3, "expense", 40, "2025-02-14", 1),
                txn(4, "expense", 999, "2025-03-09", None),
                txn(5, "income", 2000, "2025-03-01", 4),
            ]
        )
    )


def test_budgeted_but_unspent_category_is_listed(budgets, expenses):
    lines = {line["category"]: line for line in budget_vs_actual(budgets, expenses, "2025-03")}
    assert set(lines) == {"Food", "Rent", "Travel"}
    assert lines["Travel"]["spent"] == 0.0
    assert lines["Food"]["limit"] == 100.0
    assert lines["Food"]["spent"] == 150.0


def test_overbudget_only_lists_exceeded_budgets(budgets, expenses):
    overs = overbudget_categories(budgets, expenses, "2025-03")
    assert [row["category"] for row in overs] == ["Food", "Rent"]
    assert overs[0] == {"category": "Food", "spent": 150.0, "limit": 100.0, "over": 50.0}


def test_overbudget_respects_limit(budgets, expenses):
    assert len(overbudget_categories(budgets, expenses, "2025-03", limit=1)) == 1


def test_field_styles_share_one_computation(budgets, expenses):
    spanish = budget_vs_actual(budgets, expenses, "2025-03", field_style="spanish")
    both = budget_vs_actual(budgets, expenses, "2025-03", field_style="both")
    assert "limit" not in spanish[0]
    for es, combined in zip(spanish, both):
        assert es["presupuesto"] == combined["limit"] == combined["presupuesto"]
        assert es["gastado"] == combined["spent"] == combined["gastado"]


def test_unknown_field_style_is_rejected(budgets, expenses):
    with pytest.raises(ReportValidationError):
        budget_vs_actual(budgets, expenses, "2025-03", field_style="french")


@pytest.mark.parametrize("style", ["english", "spanish", "both"])
def test_known_field_styles_pass_the_check(style):
    check_field_style(style)


def test_unknown_field_style_fails_the_check():
    with pytest.raises(ReportValidationError, match="klingon"):
        check_field_style("klingon")


def test_spend_by_month_category_sums_matching_ids(expenses):
    extra = expenses_only(prepare_transactions([txn(6, "expense", 10, "2025-03-20", "1"), txn(7, "expense", 5, None, 1)]))
    spent = spend_by_month_category(pd.concat([expenses, extra], ignore_index=True))
    assert spent == {
        ("2025-03", "1"): pytest.approx(160.0),
        ("2025-03", "2"): pytest.approx(520.0),
        ("2025-02", "1"): pytest.approx(40.0),
    }


def test_spend_by_month_category_on_empty_frame():
    assert spend_by_month_category(expenses_only(prepare_transactions([]))) == {}


def test_budget_history_is_month_ordered(budgets, expenses):
    history = budget_history(budgets, expenses)
    assert history[0] == {"month": "2025-02", "category": "Food", "budgeted": 90.0, "spent": 40.0}
    assert [line["month"] for line in history] == ["2025-02", "2025-03", "2025-03", "2025-03"]


def test_yearly_summary_has_twelve_months(budgets, expenses):
    summary = budget_summary_by_month(budgets, expenses, 2025)
    assert len(summary) == 12
    march = summary[2]
    assert march == {"month": "2025-03", "budgeted": 650.0, "spent": 1669.0}
    assert summary[0] == {"month": "2025-01", "budgeted": 0.0, "spent": 0.0}


def test_malformed_budget_month_is_ignored():
    frame = prepare_budgets([{"id": 9, "category_id": 1, "month": "2025-13", "limit_amount": 10}])
    assert pd.isna(frame.loc[0, "month"])


def test_goal_progress_is_capped_and_guarded():
    rows = goals_progress(
        [
            {"name": "Car", "current_amount": 500, "target_amount": 2000},
            {"name": "Trip", "current_amount": 900, "target_amount": 600},
            {"name": "Someday", "current_amount": 50, "target_amount": 0},
        ]
    )
    assert [row["progress"] for row in rows] == [25.0, 100.0, 0.0]
