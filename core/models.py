"""Shared report shapes produced by the ledger analytics engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, TypedDict


class CategoryTotal(TypedDict):
    category: str
    total: float


class StabilityTotal(TypedDict):
    type: str
    total: float


class AccountBalance(TypedDict):
    account_id: object
    name: str
    balance: float


class MonthlyFlow(TypedDict):
    month: str
    income: float
    expense: float
    saving: float


class BudgetLine(TypedDict, total=False):
    category_id: object
    category: str
    month: str
    limit: float
    spent: float
    presupuesto: float
    gastado: float


class OverBudgetLine(TypedDict):
    category: str
    spent: float
    limit: float
    over: float


class BudgetHistoryLine(TypedDict):
    month: str
    category: str
    budgeted: float
    spent: float


class BudgetMonthSummary(TypedDict):
    month: str
    budgeted: float
    spent: float


class GoalProgress(TypedDict):
    name: str
    current: float
    target: float
    progress: float


class ComparisonRow(TypedDict, total=False):
    category_id: object
    category_name: str
    item_id: object
    item_name: str
    month1_total: float
    month2_total: float
    diff: float
    diff_percent: float


class ComparisonMeta(TypedDict):
    month1: str
    month2: str
    month1_total: float
    month2_total: float


class ComparisonReport(TypedDict):
    meta: ComparisonMeta
    data: list[ComparisonRow]


class ProjectionRow(TypedDict):
    month: str
    income: float
    expense: float
    saving: float


class ScenarioAverages(TypedDict):
    avg_income: float
    avg_expense: float
    avg_saving: float


class ScenarioComparison(TypedDict):
    current: ScenarioAverages
    scenario: ScenarioAverages


class ScenarioProjectionRow(TypedDict):
    month: str
    scenario: str
    projected_income: float
    projected_expense: float
    projected_saving: float


class CategoryProjection(TypedDict):
    category: str
    stability_type: str
    projected_monthly: float


class StabilityBalance(TypedDict):
    stability_type: str
    income: float
    expense: float
    balance: float


class CategoryChange(TypedDict):
    category: str
    percent: float


class DashboardSummary(TypedDict):
    month: str
    total_income: float
    total_expense: float
    balance: float
    saving_rate: float
    saving_rate_diff: float
    average_daily_expense: float
    average_monthly_expense: float
    income_diff_percent: float
    expense_diff_percent: float
    total_transactions: int
    completed_goals: int
    total_goals: int
    top_category: Optional[CategoryTotal]
    most_increased_category: Optional[CategoryChange]
    most_decreased_category: Optional[CategoryChange]
    monthly_budget: float
    budgeted_expense: float
    budget_balance: float
    ytd_income: float
    ytd_expense: float
    ytd_saving: float


class RestockRow(TypedDict):
    item_id: object
    item_name: str
    gap_months: int
    projected_next_month_qty: float
    projected_next_month_cost: float


class RestockMeta(TypedDict):
    months_considered: list[str]
    next_month: str
    excludes_occasional: bool
    cost_includes_item_tax: bool


class RestockReport(TypedDict):
    meta: RestockMeta
    data: list[RestockRow]


@dataclass(frozen=True)
class MonthlyAverages:
    """Average monthly income and expense over the months that have data."""

    income: float
    expense: float
    months: int

    @property
    def saving(self) -> float:
        return self.income - self.expense


@dataclass(frozen=True)
class ScenarioFactors:
    income: float
    expense: float


@dataclass(frozen=True)
class PurchaseSnapshot:
    """Price and tax details of the most recent purchase of an item."""

    date: date
    net_price: float
    tax_rate: float
    is_exempt: bool
    line_total: Optional[float] = None
    quantity: float = 1.0


@dataclass
class CadenceProfile:
    item_id: object
    item_name: str
    per_month_qty: dict[str, float] = field(default_factory=dict)
    last_purchase: Optional[PurchaseSnapshot] = None


__all__ = [
    "CategoryTotal",
    "StabilityTotal",
    "AccountBalance",
    "MonthlyFlow",
    "BudgetLine",
    "OverBudgetLine",
    "BudgetHistoryLine",
    "BudgetMonthSummary",
    "GoalProgress",
    "ComparisonRow",
    "ComparisonMeta",
    "ComparisonReport",
    "ProjectionRow",
    "ScenarioAverages",
    "ScenarioComparison",
    "ScenarioProjectionRow",
    "CategoryProjection",
    "StabilityBalance",
    "CategoryChange",
    "DashboardSummary",
    "RestockRow",
    "RestockMeta",
    "RestockReport",
    "MonthlyAverages",
    "ScenarioFactors",
    "PurchaseSnapshot",
    "CadenceProfile",
]
