"""End-to-end tests for the report service over an in-memory store."""

from __future__ import annotations

from datetime import datetime

import pytest

from config.settings import Settings
from conftest import line, txn
from core.errors import ReportValidationError, RowStoreError
from core.report_service import AnalyticsService
from core.store import InMemoryRowStore, RowFilters


@pytest.fixture()
def tables():
    return {
        "transactions": [
            txn(1, "income", 1000, "2025-02-01", 4),
            txn(2, "expense", 150, "2025-02-03", 1),
            txn(3, "expense", 500, "2025-02-04", 2),
            txn(4, "income", 1000, "2025-03-01", 4),
            txn(5, "expense", 220, "2025-03-03", 1),
            txn(6, "expense", 500, "2025-03-04", 2),
            txn(7, "expense", 300, "2025-03-08", 3),
            txn(8, "expense", 75, "2025-03-09", 1, user_id="someone-else"),
        ],
        "budgets": [
            {"id": 1, "user_id": "u1", "category_id": 1, "month": "2025-03", "limit_amount": 200, "categories": {"name": "Food"}},
            {"id": 2, "user_id": "u1", "category_id": 2, "month": "2025-03", "limit_amount": 600, "categories": {"name": "Rent"}},
        ],
        "goals": [
            {"id": 1, "user_id": "u1", "name": "Emergency fund", "current_amount": 1500, "target_amount": 3000},
            {"id": 2, "user_id": "u1", "name": "Laptop", "current_amount": 1200, "target_amount": 1000},
        ],
        "transaction_items": [
            line(1, "Coffee beans", "2025-01-10", 1, 8.0, tax_rate=10),
            line(1, "Coffee beans", "2025-03-12", 2, 8.0, tax_rate=10),
            line(2, "Oat milk", "2025-03-12", 3, 1.5),
        ],
        "item_prices": [
            {"item_id": 1, "user_id": "u1", "price": 8.5, "date": "2025-03-01", "items": {"name": "Coffee beans"}},
            {"item_id": 1, "user_id": "u1", "price": 8.0, "date": "2025-01-01", "items": {"name": "Coffee beans"}},
        ],
        "scenario_transactions": [
            {"id": 5, "scenario_id": 9, "name": "Side gig", "amount": 200, "type": "income", "start_date": "2025-03-01", "recurrence": "biweekly"},
        ],
    }


@pytest.fixture()
def service(tables, fixed_clock):
    return AnalyticsService(InMemoryRowStore(tables), settings=Settings(), clock=fixed_clock)


class RecordingStore:
    def __init__(self, inner=None, error=None):
        self.inner = inner
        self.error = error
        self.calls = []

    def fetch_rows(self, table, filters):
        self.calls.append((table, filters))
        if self.error is not None:
            raise self.error
        return self.inner.fetch_rows(table, filters)


def test_budget_vs_actual_defaults_to_current_month(service):
    lines = {line["category"]: line for line in service.budget_vs_actual("u1")}
    assert lines["Food"]["spent"] == 220.0
    assert lines["Rent"]["limit"] == 600.0


def test_budget_vs_actual_spanish_fields(service):
    lines = service.budget_vs_actual("u1", (2025, 3), field_style="spanish")
    assert {line["category"]: line["gastado"] for line in lines} == {"Food": 220.0, "Rent": 500.0}


def test_overbudget_report(service):
    assert service.overbudget_categories("u1") == [{"category": "Food", "spent": 220.0, "limit": 200.0, "over": 20.0}]


def test_category_comparison_defaults_to_previous_and_current_month(service):
    report = service.compare_categories("u1")
    assert report["meta"] == {"month1": "2025-02", "month2": "2025-03", "month1_total": 650.0, "month2_total": 1020.0}
    assert [row["category_name"] for row in report["data"]] == ["Travel", "Food", "Rent"]


def test_explicit_comparison_periods(service):
    report = service.compare_categories("u1", "2025-03", (2025, 2))
    assert report["meta"]["month1"] == "2025-03"
    assert [row["category_name"] for row in report["data"]] == ["Rent", "Travel", "Food"]


def test_item_comparison_and_restock(service):
    items = service.compare_items("u1", (2025, 1), (2025, 3))
    assert items["meta"]["month1_total"] == pytest.approx(8.8)
    restock = service.items_to_restock("u1")
    assert restock["meta"]["next_month"] == "2025-04"
    assert restock["data"] == []


def test_category_spending_summary_uses_trailing_window(service):
    summary = service.category_spending_summary("u1")
    assert summary == [
        {"category": "Rent", "total": 1000.0},
        {"category": "Food", "total": 370.0},
        {"category": "Travel", "total": 300.0},
    ]


def test_projection_reports(service):
    realistic = service.realistic_projection("u1")
    assert [row["month"] for row in realistic[:2]] == ["2025-02", "2025-03"]
    assert realistic[2] == {"month": "2025-04", "income": 1000.0, "expense": 685.0, "saving": 315.0}
    assert len(service.scenario_projections("u1")) == 18


def test_simulated_scenario(service):
    result = service.simulated_scenario("u1", expense_adjustment={"type": "occasional", "percent_reduction": 100})
    assert result["current"]["avg_expense"] == 835.0
    assert result["scenario"]["avg_expense"] == 685.0


def test_goals_and_dashboard(service):
    assert [goal["progress"] for goal in service.goals_progress("u1")] == [50.0, 100.0]
    summary = service.dashboard_summary("u1")
    assert summary["month"] == "2025-03"
    assert summary["total_expense"] == 1020.0
    assert summary["balance"] == -20.0
    assert summary["average_daily_expense"] == 68.0
    assert summary["completed_goals"] == 1
    assert summary["top_category"] == {"category": "Rent", "total": 500.0}
    assert summary["budgeted_expense"] == 720.0
    assert summary["expense_diff_percent"] == pytest.approx(56.92)


def test_item_reports(service):
    assert service.top_items("u1")[0] == {"item": "Coffee beans", "quantity": 3.0}
    assert service.top_items_by_value("u1", 2025, 3)[0] == {"item": "Coffee beans", "total_spent": 17.6}
    trend = service.item_trend("u1", 1)
    assert [row["month"] for row in trend] == ["2025-01", "2025-03"]
    prices = service.item_prices_trend("u1", [1])
    assert [row["price"] for row in prices] == [8.0, 8.5]


def test_scenario_projection_expands_rules(service):
    instances = service.scenario_projection(9)
    assert [row["date"] for row in instances] == ["2025-03-01", "2025-03-15", "2025-03-29"]


def test_parallel_reads_match_sequential(tables, fixed_clock):
    sequential = AnalyticsService(InMemoryRowStore(tables), settings=Settings(), clock=fixed_clock)
    parallel = AnalyticsService(InMemoryRowStore(tables), settings=Settings(parallel_reads=True), clock=fixed_clock)
    assert parallel.dashboard_summary("u1") == sequential.dashboard_summary("u1")
    assert parallel.compare_categories("u1") == sequential.compare_categories("u1")


@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.top_items_by_value("u1", None, 3),
        lambda s: s.top_items_by_value("u1", 2025, 13),
        lambda s: s.item_prices_trend("u1", []),
        lambda s: s.item_trend("u1", None),
        lambda s: s.compare_categories("u1", "2025-3"),
        lambda s: s.budget_vs_actual("u1", field_style="klingon"),
        lambda s: s.simulated_scenario("u1", {"amount": "x"}),
        lambda s: s.category_trend(None),
    ],
)
def test_validation_happens_before_any_read(call, fixed_clock):
    store = RecordingStore(InMemoryRowStore())
    with pytest.raises(ReportValidationError):
        call(AnalyticsService(store, settings=Settings(), clock=fixed_clock))
    assert store.calls == []


def test_store_failures_are_wrapped_and_propagated(fixed_clock):
    store = RecordingStore(error=ConnectionError("database unavailable"))
    service = AnalyticsService(store, settings=Settings(), clock=fixed_clock)
    with pytest.raises(RowStoreError) as excinfo:
        service.monthly_balance("u1")
    assert excinfo.value.table == "transactions"
    assert "database unavailable" in str(excinfo.value)
    assert len(store.calls) == 1


def test_row_store_errors_pass_through_unchanged(fixed_clock):
    original = RowStoreError("goals", "permission denied")
    service = AnalyticsService(RecordingStore(error=original), settings=Settings(), clock=fixed_clock)
    with pytest.raises(RowStoreError) as excinfo:
        service.goals_progress("u1")
    assert excinfo.value is original


def test_filters_reach_the_store(fixed_clock):
    store = RecordingStore(InMemoryRowStore())
    AnalyticsService(store, settings=Settings(), clock=fixed_clock).annual_expense_by_category("u1", 2024)
    table, filters = store.calls[0]
    assert table == "transactions"
    assert filters == RowFilters(user_id="u1", type="expense", date_from=datetime(2024, 1, 1).date(), date_to=datetime(2024, 12, 31).date())
