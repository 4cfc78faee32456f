"""Report service: reads rows through a :class:`RowStore` and assembles reports."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence, Union

import pandas as pd

from analytics import budgets as budget_reports
from analytics import comparison, dashboard, forecasting, items as item_reports, restock, rollups
from analytics.frames import (
    in_months,
    prepare_budgets,
    prepare_items,
    prepare_transactions,
)
from analytics.periods import (
    DateRange,
    month_bounds,
    month_key,
    month_range,
    parse_month_key,
    previous_month,
    trailing_months,
    window_start,
    year_range,
)
from config.settings import Settings, get_settings
from core.errors import ReportValidationError, RowStoreError
from core.models import (
    AccountBalance,
    BudgetHistoryLine,
    BudgetLine,
    BudgetMonthSummary,
    CategoryProjection,
    CategoryTotal,
    ComparisonReport,
    DashboardSummary,
    GoalProgress,
    MonthlyFlow,
    OverBudgetLine,
    ProjectionRow,
    RestockReport,
    ScenarioComparison,
    ScenarioProjectionRow,
    StabilityBalance,
    StabilityTotal,
)
from core.store import RowFilters, RowStore

__all__ = ["PeriodLike", "AnalyticsService"]

logger = logging.getLogger(__name__)

PeriodLike = Union[str, Sequence[int]]
Rows = list[Mapping[str, Any]]


def _require_user(user_id: Any) -> None:
    if user_id is None or (isinstance(user_id, str) and not user_id.strip()):
        raise ReportValidationError("user_id is required")


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ReportValidationError(f"{name} must be an integer, got {value!r}")
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ReportValidationError(f"{name} must be an integer, got {value!r}") from exc
    return number


def _validate_year(year: Any) -> int:
    number = _as_int(year, "year")
    if not 1 <= number <= 9999:
        raise ReportValidationError(f"year out of range: {year!r}")
    return number


def _validate_month(month: Any) -> int:
    number = _as_int(month, "month")
    if not 1 <= number <= 12:
        raise ReportValidationError(f"month must be between 1 and 12, got {month!r}")
    return number


def _period_key(period: PeriodLike, name: str) -> str:
    """Normalise ``(year, month)`` or ``"YYYY-MM"`` into a month key."""

    if isinstance(period, str):
        year, month = parse_month_key(period)
        return f"{year:04d}-{month:02d}"
    try:
        year, month = period
    except (TypeError, ValueError) as exc:
        raise ReportValidationError(f"{name} must be (year, month) or 'YYYY-MM', got {period!r}") from exc
    return f"{_validate_year(year):04d}-{_validate_month(month):02d}"


class AnalyticsService:
    """Request-scoped report computation over a read-only row store.

    Every public method validates its parameters, performs the reads it needs
    and aggregates them; nothing is cached between calls. ``clock`` supplies
    the reference instant for "current month" style reports.
    """

    def __init__(
        self,
        store: RowStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock

    @property
    def settings(self) -> Settings:
        return self._settings

    # ------------------------------------------------------------------ reads

    def _reference(self) -> pd.Timestamp:
        now = pd.Timestamp(self._clock())
        if now.tzinfo is not None:
            now = now.tz_localize(None)
        return now

    def _fetch(self, table: str, filters: RowFilters) -> Rows:
        logger.debug("Reading %s (%s)", table, filters.describe())
        try:
            return list(self._store.fetch_rows(table, filters))
        except RowStoreError as exc:
            logger.error("Row store read of %s failed: %s", table, exc.message)
            raise
        except Exception as exc:
            logger.error("Row store read of %s failed: %s", table, exc)
            raise RowStoreError(table, str(exc)) from exc

    def _fetch_many(self, requests: Mapping[str, tuple[str, RowFilters]]) -> dict[str, Rows]:
        """Run independent reads, concurrently when ``parallel_reads`` is enabled."""

        if not self._settings.parallel_reads or len(requests) < 2:
            return {name: self._fetch(table, filters) for name, (table, filters) in requests.items()}

        workers = min(self._settings.max_read_workers, len(requests))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                name: executor.submit(self._fetch, table, filters) for name, (table, filters) in requests.items()
            }
            return {name: future.result() for name, future in futures.items()}

    def _transactions(self, rows: Rows) -> pd.DataFrame:
        return prepare_transactions(
            rows,
            uncategorized_label=self._settings.uncategorized_label,
            unnamed_label=self._settings.unnamed_label,
        )

    def _items(self, rows: Rows) -> pd.DataFrame:
        return prepare_items(
            rows,
            unnamed_label=self._settings.unnamed_label,
            uncategorized_label=self._settings.uncategorized_label,
        )

    def _budgets(self, rows: Rows) -> pd.DataFrame:
        return prepare_budgets(rows, uncategorized_label=self._settings.uncategorized_label)

    @staticmethod
    def _filters(user_id: Any, span: Optional[DateRange] = None, **extra: Any) -> RowFilters:
        if span is None:
            return RowFilters(user_id=user_id, **extra)
        return RowFilters(user_id=user_id, date_from=span.start, date_to=span.end, **extra)

    def _window(self, months: int) -> tuple[list[str], DateRange]:
        reference = self._reference()
        keys = trailing_months(months, reference)
        return keys, DateRange(window_start(months, reference), month_bounds(reference).end)

    def _read_transactions(self, user_id: Any, span: Optional[DateRange] = None, **extra: Any) -> pd.DataFrame:
        return self._transactions(self._fetch("transactions", self._filters(user_id, span, **extra)))

    def _year(self, year: Optional[Any]) -> int:
        return self._reference().year if year is None else _validate_year(year)

    # ----------------------------------------------------------- category mix

    def category_spending_summary(self, user_id: Any) -> list[CategoryTotal]:
        """Expense per category over the trailing summary window."""

        _require_user(user_id)
        _, span = self._window(self._settings.summary_window_months)
        return rollups.category_totals(self._read_transactions(user_id, span, type="expense"))

    def category_trend(self, user_id: Any) -> list[dict[str, Any]]:
        _require_user(user_id)
        months, span = self._window(self._settings.trend_window_months)
        expenses = self._read_transactions(user_id, span, type="expense")
        return rollups.category_trend(expenses, months)

    def annual_expense_by_category(self, user_id: Any, year: Optional[Any] = None) -> list[CategoryTotal]:
        _require_user(user_id)
        span = year_range(self._year(year))
        return rollups.category_totals(self._read_transactions(user_id, span, type="expense"))

    def yearly_category_variations(
        self, user_id: Any, year: Optional[Any] = None
    ) -> dict[str, list[dict[str, Any]]]:
        _require_user(user_id)
        span = year_range(self._year(year))
        return rollups.yearly_category_variations(self._read_transactions(user_id, span, type="expense"))

    def expense_by_stability_type(self, user_id: Any) -> list[StabilityTotal]:
        _require_user(user_id)
        return rollups.expense_by_stability(self._read_transactions(user_id, type="expense"))

    def top_variable_categories(self, user_id: Any) -> list[CategoryTotal]:
        _require_user(user_id)
        expenses = self._read_transactions(user_id, type="expense")
        return rollups.top_variable_categories(expenses, limit=self._settings.top_variable_limit)

    # -------------------------------------------------------------- balances

    def account_balances(self, user_id: Any) -> list[AccountBalance]:
        _require_user(user_id)
        return rollups.account_balances(self._read_transactions(user_id))

    def monthly_balance(self, user_id: Any) -> list[dict[str, Any]]:
        _require_user(user_id)
        return rollups.monthly_balance(self._read_transactions(user_id))

    def saving_trend(self, user_id: Any) -> list[MonthlyFlow]:
        _require_user(user_id)
        return rollups.saving_trend(self._read_transactions(user_id))

    def monthly_income_expense(self, user_id: Any, year: Optional[Any] = None) -> list[dict[str, Any]]:
        _require_user(user_id)
        span = year_range(self._year(year))
        return rollups.monthly_income_expense(self._read_transactions(user_id, span))

    # --------------------------------------------------------------- budgets

    def budget_vs_actual(
        self,
        user_id: Any,
        month: Optional[PeriodLike] = None,
        *,
        field_style: str = "english",
    ) -> list[BudgetLine]:
        """Every budgeted category of ``month`` (default: current) with its spend."""

        _require_user(user_id)
        # Validation precedes any store read.
        budget_reports.check_field_style(field_style)
        key = month_key(self._reference()) if month is None else _period_key(month, "month")
        reads = self._fetch_many(
            {
                "budgets": ("budgets", RowFilters(user_id=user_id, month=key)),
                "expenses": ("transactions", self._filters(user_id, month_bounds(key), type="expense")),
            }
        )
        return budget_reports.budget_vs_actual(
            self._budgets(reads["budgets"]),
            self._transactions(reads["expenses"]),
            key,
            field_style=field_style,
        )

    def overbudget_categories(self, user_id: Any, month: Optional[PeriodLike] = None) -> list[OverBudgetLine]:
        _require_user(user_id)
        key = month_key(self._reference()) if month is None else _period_key(month, "month")
        reads = self._fetch_many(
            {
                "budgets": ("budgets", RowFilters(user_id=user_id, month=key)),
                "expenses": ("transactions", self._filters(user_id, month_bounds(key), type="expense")),
            }
        )
        return budget_reports.overbudget_categories(
            self._budgets(reads["budgets"]),
            self._transactions(reads["expenses"]),
            key,
            limit=self._settings.overbudget_limit,
        )

    def _budget_lines(self, user_id: Any, months: list[str], span: DateRange) -> list[BudgetHistoryLine]:
        reads = self._fetch_many(
            {
                "budgets": ("budgets", RowFilters(user_id=user_id, month_from=months[0], month_to=months[-1])),
                "expenses": ("transactions", self._filters(user_id, span, type="expense")),
            }
        )
        return budget_reports.budget_history(
            self._budgets(reads["budgets"]),
            self._transactions(reads["expenses"]),
        )

    def budget_vs_actual_history(self, user_id: Any) -> list[BudgetHistoryLine]:
        """Budget lines of the trailing window, oldest month first."""

        _require_user(user_id)
        months, span = self._window(self._settings.summary_window_months)
        return self._budget_lines(user_id, months, span)

    def budget_vs_actual_yearly(self, user_id: Any, year: Optional[Any] = None) -> list[BudgetHistoryLine]:
        _require_user(user_id)
        target = self._year(year)
        months = [f"{target:04d}-{month:02d}" for month in range(1, 13)]
        return self._budget_lines(user_id, months, year_range(target))

    def budget_summary_yearly(self, user_id: Any, year: Optional[Any] = None) -> list[BudgetMonthSummary]:
        _require_user(user_id)
        target = self._year(year)
        reads = self._fetch_many(
            {
                "budgets": ("budgets", RowFilters(user_id=user_id, month_from=f"{target:04d}-01", month_to=f"{target:04d}-12")),
                "expenses": ("transactions", self._filters(user_id, year_range(target), type="expense")),
            }
        )
        return budget_reports.budget_summary_by_month(
            self._budgets(reads["budgets"]),
            self._transactions(reads["expenses"]),
            target,
        )

    def goals_progress(self, user_id: Any) -> list[GoalProgress]:
        _require_user(user_id)
        return budget_reports.goals_progress(self._fetch("goals", RowFilters(user_id=user_id)))

    # ----------------------------------------------------------- projections

    def savings_projection(self, user_id: Any) -> list[dict[str, Any]]:
        _require_user(user_id)
        history = forecasting.monthly_history(self._read_transactions(user_id))
        return forecasting.savings_projection(
            history, reference=self._reference(), months=self._settings.projection_months
        )

    def saving_real_vs_projected(self, user_id: Any) -> list[dict[str, Any]]:
        _require_user(user_id)
        history = forecasting.monthly_history(self._read_transactions(user_id))
        return forecasting.saving_real_vs_projected(
            history, reference=self._reference(), months=self._settings.projection_months
        )

    def realistic_projection(self, user_id: Any) -> list[ProjectionRow]:
        """Recent history without occasional spend, followed by its flat projection."""

        _require_user(user_id)
        _, span = self._window(self._settings.realistic_window_months)
        history = forecasting.monthly_history(self._read_transactions(user_id, span), exclude=("occasional",))
        return forecasting.projection_with_history(
            history, reference=self._reference(), months=self._settings.projection_months
        )

    def scenario_projections(self, user_id: Any) -> list[ScenarioProjectionRow]:
        _require_user(user_id)
        _, span = self._window(self._settings.scenario_window_months)
        history = forecasting.monthly_history(
            self._read_transactions(user_id, span), include=("fixed", "variable")
        )
        return forecasting.scenario_projections(
            history, reference=self._reference(), months=self._settings.projection_months
        )

    def simulated_scenario(
        self,
        user_id: Any,
        income_adjustment: Optional[Mapping[str, Any]] = None,
        expense_adjustment: Optional[Mapping[str, Any]] = None,
    ) -> ScenarioComparison:
        """Current averages against the averages after a what-if adjustment."""

        _require_user(user_id)
        adjustment = forecasting.parse_adjustments(income_adjustment, expense_adjustment)
        return forecasting.simulate_scenario(self._read_transactions(user_id), adjustment)

    def projected_expense_by_category(self, user_id: Any) -> list[CategoryProjection]:
        _require_user(user_id)
        _, span = self._window(self._settings.category_projection_window_months)
        expenses = self._read_transactions(user_id, span, type="expense")
        return forecasting.projected_by_category(expenses, exclude=("occasional",))

    def projected_income_by_category(self, user_id: Any) -> list[CategoryProjection]:
        _require_user(user_id)
        _, span = self._window(self._settings.category_projection_window_months)
        return forecasting.projected_by_category(self._read_transactions(user_id, span, type="income"))

    def stability_balance_summary(self, user_id: Any) -> list[StabilityBalance]:
        _require_user(user_id)
        _, span = self._window(self._settings.category_projection_window_months)
        return forecasting.stability_balance_summary(self._read_transactions(user_id, span))

    def scenario_projection(self, scenario_id: Any) -> list[dict[str, Any]]:
        """Dated instances of a scenario's recurring rules up to the end of the current month."""

        if scenario_id is None:
            raise ReportValidationError("scenario_id is required")
        rules = self._fetch("scenario_transactions", RowFilters(scenario_id=scenario_id))
        return forecasting.expand_scenario_rules(rules, self._reference())

    # ----------------------------------------------------------------- items

    def top_items(self, user_id: Any, year: Optional[Any] = None) -> list[dict[str, Any]]:
        _require_user(user_id)
        span = year_range(self._year(year))
        lines = self._items(self._fetch("transaction_items", self._filters(user_id, span)))
        return item_reports.top_items_by_quantity(lines, limit=self._settings.top_items_limit)

    def top_items_by_value(self, user_id: Any, year: Any, month: Any) -> list[dict[str, Any]]:
        """Items with the largest tax-inclusive spend in one month; both parameters are required."""

        _require_user(user_id)
        if year is None or month is None:
            raise ReportValidationError("year and month are required")
        span = month_range(_validate_year(year), _validate_month(month) - 1)
        lines = self._items(self._fetch("transaction_items", self._filters(user_id, span)))
        return item_reports.top_items_by_value(lines, limit=self._settings.top_items_limit)

    def item_trend(self, user_id: Any, item_id: Any, year: Optional[Any] = None) -> list[dict[str, Any]]:
        _require_user(user_id)
        if item_id is None or (isinstance(item_id, str) and not item_id.strip()):
            raise ReportValidationError("item_id is required")
        span = year_range(self._year(year))
        rows = self._fetch("transaction_items", self._filters(user_id, span, item_ids=[item_id]))
        return item_reports.item_trend(self._items(rows), item_id)

    def item_prices_trend(self, user_id: Any, item_ids: Optional[Sequence[Any]]) -> list[dict[str, Any]]:
        _require_user(user_id)
        if isinstance(item_ids, str):
            item_ids = [part.strip() for part in item_ids.split(",") if part.strip()]
        if not item_ids:
            raise ReportValidationError("item_ids is required")
        rows = self._fetch("item_prices", RowFilters(user_id=user_id, item_ids=list(item_ids)))
        return item_reports.item_price_trend(rows, unnamed_label=self._settings.unnamed_label)

    # ------------------------------------------------------------ comparison

    def _comparison_months(
        self, period1: Optional[PeriodLike], period2: Optional[PeriodLike]
    ) -> tuple[str, str]:
        reference = self._reference()
        first = previous_month(reference) if period1 is None else _period_key(period1, "period1")
        second = month_key(reference) if period2 is None else _period_key(period2, "period2")
        return first, second

    def compare_categories(
        self,
        user_id: Any,
        period1: Optional[PeriodLike] = None,
        period2: Optional[PeriodLike] = None,
    ) -> ComparisonReport:
        """Expense per category in ``period1`` against ``period2`` (default: last vs. current month)."""

        _require_user(user_id)
        first, second = self._comparison_months(period1, period2)
        reads = self._fetch_many(
            {
                "first": ("transactions", self._filters(user_id, month_bounds(first), type="expense")),
                "second": ("transactions", self._filters(user_id, month_bounds(second), type="expense")),
            }
        )
        return comparison.compare_categories(
            self._transactions(reads["first"]),
            self._transactions(reads["second"]),
            month1=first,
            month2=second,
        )

    def compare_items(
        self,
        user_id: Any,
        period1: Optional[PeriodLike] = None,
        period2: Optional[PeriodLike] = None,
    ) -> ComparisonReport:
        _require_user(user_id)
        first, second = self._comparison_months(period1, period2)
        reads = self._fetch_many(
            {
                "first": ("transaction_items", self._filters(user_id, month_bounds(first))),
                "second": ("transaction_items", self._filters(user_id, month_bounds(second))),
            }
        )
        return comparison.compare_items(
            self._items(reads["first"]),
            self._items(reads["second"]),
            month1=first,
            month2=second,
        )

    # --------------------------------------------------------------- restock

    def items_to_restock(self, user_id: Any) -> RestockReport:
        """Items whose purchase cadence points at next month."""

        _require_user(user_id)
        months = self._settings.restock_window_months
        _, span = self._window(months)
        lines = self._items(self._fetch("transaction_items", self._filters(user_id, span)))
        return restock.forecast_restock(lines, self._reference(), months=months)

    # ------------------------------------------------------------- dashboard

    def dashboard_summary(self, user_id: Any, month: Optional[PeriodLike] = None) -> DashboardSummary:
        """Headline figures for ``month`` (default: current month)."""

        _require_user(user_id)
        reference = self._reference()
        key = month_key(reference) if month is None else _period_key(month, "month")
        bounds = month_bounds(key)
        if key == month_key(reference):
            days_elapsed = reference.day
        else:
            days_elapsed = (bounds.end - bounds.start).days + 1

        lookback = self._settings.dashboard_lookback_months
        recent_months = trailing_months(lookback + 1, key)[:-1]
        recent_span = DateRange(month_bounds(recent_months[0]).start, month_bounds(recent_months[-1]).end)
        year = int(key[:4])
        reads = self._fetch_many(
            {
                "current": ("transactions", self._filters(user_id, bounds)),
                "previous": ("transactions", self._filters(user_id, month_bounds(previous_month(key)))),
                "recent": ("transactions", self._filters(user_id, recent_span, type="expense")),
                "year": ("transactions", self._filters(user_id, DateRange(year_range(year).start, bounds.end))),
                "budgets": ("budgets", RowFilters(user_id=user_id, month=key)),
                "goals": ("goals", RowFilters(user_id=user_id)),
            }
        )
        return dashboard.monthly_summary(
            self._transactions(reads["current"]),
            self._transactions(reads["previous"]),
            month=key,
            days_elapsed=days_elapsed,
            recent=in_months(self._transactions(reads["recent"]), recent_months),
            lookback_months=lookback,
            year_to_date=self._transactions(reads["year"]),
            budgets=self._budgets(reads["budgets"]),
            goals=reads["goals"],
        )
