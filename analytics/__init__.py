"""Aggregation, comparison and projection algorithms for ledger reports."""

from analytics.comparison import compare_categories, compare_items, compare_periods, diff_percent
from analytics.dashboard import monthly_summary, saving_rate
from analytics.forecasting import (
    SCENARIO_PRESETS,
    ScenarioAdjustment,
    expand_scenario_rules,
    historical_averages,
    monthly_history,
    parse_adjustments,
    project_forward,
    scenario_projections,
    simulate_scenario,
)
from analytics.frames import prepare_budgets, prepare_items, prepare_transactions
from analytics.periods import DateRange, add_months, month_key, month_range, trailing_months, year_range
from analytics.restock import forecast_restock, typical_gap
from analytics.rollups import combine_rollups, monthly_flows, rollup
from analytics.valuation import gross_amount, line_amount

__all__ = [
    "DateRange",
    "add_months",
    "month_key",
    "month_range",
    "trailing_months",
    "year_range",
    "gross_amount",
    "line_amount",
    "prepare_transactions",
    "prepare_items",
    "prepare_budgets",
    "rollup",
    "combine_rollups",
    "monthly_flows",
    "compare_periods",
    "compare_categories",
    "compare_items",
    "diff_percent",
    "monthly_summary",
    "saving_rate",
    "SCENARIO_PRESETS",
    "ScenarioAdjustment",
    "monthly_history",
    "historical_averages",
    "project_forward",
    "parse_adjustments",
    "simulate_scenario",
    "scenario_projections",
    "expand_scenario_rules",
    "forecast_restock",
    "typical_gap",
]
