"""Stability-aware historical averages and forward projections."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

import pandas as pd

from analytics.frames import STABILITY_TYPES, embedded, to_timestamp
from analytics.periods import DateLike, future_months, month_bounds, month_key
from analytics.rollups import monthly_flows
from config.settings import DEFAULT_PROJECTION_MONTHS
from core.errors import ReportValidationError
from core.formatting import coerce_bool, coerce_float, to_money
from core.models import (
    CategoryProjection,
    MonthlyAverages,
    ProjectionRow,
    ScenarioAverages,
    ScenarioComparison,
    ScenarioFactors,
    ScenarioProjectionRow,
    StabilityBalance,
)

__all__ = [
    "SCENARIO_PRESETS",
    "RECURRENCES",
    "ScenarioAdjustment",
    "filter_stability",
    "monthly_history",
    "historical_averages",
    "project_forward",
    "projection_with_history",
    "savings_projection",
    "saving_real_vs_projected",
    "parse_adjustments",
    "simulate_scenario",
    "scenario_projections",
    "projected_by_category",
    "stability_balance_summary",
    "expand_scenario_rules",
]

SCENARIO_PRESETS: dict[str, ScenarioFactors] = {
    "conservative": ScenarioFactors(income=0.95, expense=1.05),
    "neutral": ScenarioFactors(income=1.0, expense=1.0),
    "optimistic": ScenarioFactors(income=1.05, expense=0.95),
}

RECURRENCES = ("daily", "weekly", "biweekly", "monthly")


@dataclass(frozen=True)
class ScenarioAdjustment:
    """Validated what-if adjustment applied to historical averages."""

    income_delta: float = 0.0
    stability_type: Optional[str] = None
    percent_reduction: float = 0.0


def filter_stability(
    frame: pd.DataFrame,
    *,
    exclude: Iterable[str] = (),
    include: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """Restrict rows by category stability type."""

    mask = ~frame["stability_type"].isin(list(exclude))
    if include is not None:
        mask &= frame["stability_type"].isin(list(include))
    return frame[mask]


def monthly_history(
    frame: pd.DataFrame,
    *,
    exclude: Iterable[str] = (),
    include: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """Month buckets of income, expense and saving after stability filtering."""

    return monthly_flows(filter_stability(frame, exclude=exclude, include=include))


def historical_averages(history: pd.DataFrame) -> MonthlyAverages:
    """Average income and expense over the months present in ``history``."""

    months = int(len(history))
    if months == 0:
        return MonthlyAverages(income=0.0, expense=0.0, months=0)
    return MonthlyAverages(
        income=float(history["income"].sum()) / months,
        expense=float(history["expense"].sum()) / months,
        months=months,
    )


def _last_month(history: pd.DataFrame, reference: DateLike) -> str:
    if history.empty:
        return month_key(reference)
    return str(history["month"].iloc[-1])


def _history_rows(history: pd.DataFrame) -> list[ProjectionRow]:
    return [
        {
            "month": record["month"],
            "income": to_money(record["income"]),
            "expense": to_money(record["expense"]),
            "saving": to_money(record["saving"]),
        }
        for record in history.to_dict(orient="records")
    ]


def project_forward(
    history: pd.DataFrame,
    *,
    reference: DateLike,
    months: int = DEFAULT_PROJECTION_MONTHS,
    averages: Optional[MonthlyAverages] = None,
) -> list[ProjectionRow]:
    """Flat projection of the historical averages over the following months.

    Parameters
    ----------
    history:
        Output of :func:`monthly_history`, oldest month first.
    reference:
        Instant used as the anchor when there is no history at all.
    months:
        Number of future months to emit.
    averages:
        Pre-computed averages; derived from ``history`` when omitted.
    """

    averages = averages or historical_averages(history)
    return [
        {
            "month": month,
            "income": to_money(averages.income),
            "expense": to_money(averages.expense),
            "saving": to_money(averages.saving),
        }
        for month in future_months(_last_month(history, reference), months)
    ]


def projection_with_history(
    history: pd.DataFrame,
    *,
    reference: DateLike,
    months: int = DEFAULT_PROJECTION_MONTHS,
) -> list[ProjectionRow]:
    return [*_history_rows(history), *project_forward(history, reference=reference, months=months)]


def savings_projection(
    history: pd.DataFrame,
    *,
    reference: DateLike,
    months: int = DEFAULT_PROJECTION_MONTHS,
) -> list[dict[str, Any]]:
    """Observed monthly saving followed by the average saving carried forward."""

    averages = historical_averages(history)
    rows = [{"month": row["month"], "saving": row["saving"]} for row in _history_rows(history)]
    rows.extend(
        {"month": month, "saving": to_money(averages.saving)}
        for month in future_months(_last_month(history, reference), months)
    )
    return rows


def saving_real_vs_projected(
    history: pd.DataFrame,
    *,
    reference: DateLike,
    months: int = DEFAULT_PROJECTION_MONTHS,
) -> list[dict[str, Any]]:
    """Actual saving next to the average saving; future months carry an actual of 0."""

    projected = to_money(historical_averages(history).saving)
    rows = [
        {"month": row["month"], "saving": row["saving"], "projected_saving": projected}
        for row in _history_rows(history)
    ]
    rows.extend(
        {"month": month, "saving": 0.0, "projected_saving": projected}
        for month in future_months(_last_month(history, reference), months)
    )
    return rows


def _finite(value: Any, field: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ReportValidationError(f"{field} must be a number, got {value!r}") from exc
    if math.isnan(number) or math.isinf(number):
        raise ReportValidationError(f"{field} must be a finite number, got {value!r}")
    return number


def parse_adjustments(
    income_adjustment: Optional[Mapping[str, Any]] = None,
    expense_adjustment: Optional[Mapping[str, Any]] = None,
) -> ScenarioAdjustment:
    """Validate the what-if payload.

    ``income_adjustment`` is ``{"amount": number}`` (an absolute monthly
    delta). ``expense_adjustment`` is ``{"type": stability_type,
    "percent_reduction": 0..100}``; ``stability_type`` is accepted as an
    alias of ``type``.

    Raises
    ------
    ReportValidationError
        If either adjustment is not a mapping or carries invalid values.
    """

    income_delta = 0.0
    if income_adjustment is not None:
        if not isinstance(income_adjustment, Mapping) or "amount" not in income_adjustment:
            raise ReportValidationError("income_adjustment must be an object with an 'amount'")
        income_delta = _finite(income_adjustment["amount"], "income_adjustment.amount")

    if expense_adjustment is None:
        return ScenarioAdjustment(income_delta=income_delta)

    if not isinstance(expense_adjustment, Mapping):
        raise ReportValidationError("expense_adjustment must be an object")
    stability = expense_adjustment.get("type", expense_adjustment.get("stability_type"))
    if stability not in STABILITY_TYPES:
        raise ReportValidationError(
            f"expense_adjustment.type must be one of {', '.join(STABILITY_TYPES)}, got {stability!r}"
        )
    if "percent_reduction" not in expense_adjustment:
        raise ReportValidationError("expense_adjustment requires 'percent_reduction'")
    percent = _finite(expense_adjustment["percent_reduction"], "expense_adjustment.percent_reduction")
    if not 0 <= percent <= 100:
        raise ReportValidationError(f"percent_reduction must be between 0 and 100, got {percent}")
    return ScenarioAdjustment(income_delta=income_delta, stability_type=stability, percent_reduction=percent)


def _scenario_averages(income: float, expense: float) -> ScenarioAverages:
    return {
        "avg_income": to_money(income),
        "avg_expense": to_money(expense),
        "avg_saving": to_money(income - expense),
    }


def simulate_scenario(frame: pd.DataFrame, adjustment: ScenarioAdjustment) -> ScenarioComparison:
    """Current monthly averages next to the averages after ``adjustment``.

    The expense reduction is a percentage of the average monthly spend in the
    chosen stability type, subtracted from the overall average expense.
    """

    history = monthly_flows(frame)
    averages = historical_averages(history)

    income = averages.income + adjustment.income_delta
    expense = averages.expense
    if adjustment.stability_type is not None and averages.months:
        dated = frame[frame["month"].isin(history["month"])]
        of_type = dated[(dated["type"] == "expense") & (dated["stability_type"] == adjustment.stability_type)]
        average_of_type = float(of_type["amount"].sum()) / averages.months
        expense -= adjustment.percent_reduction / 100 * average_of_type

    return {
        "current": _scenario_averages(averages.income, averages.expense),
        "scenario": _scenario_averages(income, expense),
    }


def scenario_projections(
    history: pd.DataFrame,
    *,
    reference: DateLike,
    months: int = DEFAULT_PROJECTION_MONTHS,
    presets: Mapping[str, ScenarioFactors] = SCENARIO_PRESETS,
) -> list[ScenarioProjectionRow]:
    """One row per future month and preset, months outermost."""

    averages = historical_averages(history)
    rows: list[ScenarioProjectionRow] = []
    for month in future_months(_last_month(history, reference), months):
        for name, factors in presets.items():
            income = averages.income * factors.income
            expense = averages.expense * factors.expense
            rows.append(
                {
                    "month": month,
                    "scenario": name,
                    "projected_income": to_money(income),
                    "projected_expense": to_money(expense),
                    "projected_saving": to_money(income - expense),
                }
            )
    return rows


def projected_by_category(
    frame: pd.DataFrame,
    *,
    exclude: Iterable[str] = (),
) -> list[CategoryProjection]:
    """Average monthly amount per category over the months in which it appears."""

    dated = filter_stability(frame, exclude=exclude)
    dated = dated[dated["month"].notna()]
    if dated.empty:
        return []

    per_month = dated.groupby(["category_name", "stability_type", "month"])["amount"].sum()
    averages = per_month.groupby(level=["category_name", "stability_type"]).mean()

    rows: list[CategoryProjection] = [
        {"category": str(category), "stability_type": str(stability), "projected_monthly": float(amount)}
        for (category, stability), amount in averages.items()
    ]
    rows.sort(key=lambda row: (-row["projected_monthly"], row["category"]))
    for row in rows:
        row["projected_monthly"] = to_money(row["projected_monthly"])
    return rows


def stability_balance_summary(frame: pd.DataFrame, *, exclude: Iterable[str] = ("occasional",)) -> list[StabilityBalance]:
    """Average monthly income, expense and balance per stability type."""

    flows = filter_stability(frame, exclude=exclude)
    flows = flows[flows["month"].notna() & flows["type"].isin(["income", "expense"])]
    if flows.empty:
        return []

    per_month = (
        flows.groupby(["stability_type", "month", "type"])["amount"]
        .sum()
        .unstack("type", fill_value=0.0)
        .reindex(columns=["income", "expense"], fill_value=0.0)
    )
    averages = per_month.groupby(level="stability_type").mean()

    order = {stability: position for position, stability in enumerate(STABILITY_TYPES)}
    rows: list[StabilityBalance] = []
    for stability in sorted(averages.index, key=lambda value: (order.get(value, len(order)), value)):
        income = float(averages.loc[stability, "income"])
        expense = float(averages.loc[stability, "expense"])
        rows.append(
            {
                "stability_type": str(stability),
                "income": to_money(income),
                "expense": to_money(expense),
                "balance": to_money(income - expense),
            }
        )
    return rows


def _rule_dates(start: pd.Timestamp, end: pd.Timestamp, recurrence: Optional[str]) -> list[pd.Timestamp]:
    if recurrence is None:
        return [start] if start <= end else []
    if recurrence == "monthly":
        dates = []
        current = start
        while current <= end:
            dates.append(current)
            current = start + pd.DateOffset(months=len(dates))
        return dates
    freq = {"daily": "D", "weekly": "7D", "biweekly": "14D"}[recurrence]
    return list(pd.date_range(start, end, freq=freq))


def expand_scenario_rules(
    rules: Sequence[Mapping[str, Any]],
    reference: DateLike,
) -> list[dict[str, Any]]:
    """Expand recurring what-if rules into dated instances.

    Each rule repeats from its ``start_date`` until its ``end_date`` or the end
    of the reference month, whichever comes first. Monthly rules keep their
    day of month (clamped to the month length). With ``exclude_weekends`` the
    Saturday and Sunday instances are dropped without shifting the schedule.
    A rule without ``recurrence`` produces a single instance.

    Raises
    ------
    ReportValidationError
        If a rule has no usable start date or an unknown recurrence.
    """

    horizon = pd.Timestamp(month_bounds(reference).end)
    instances: list[dict[str, Any]] = []
    for rule in rules:
        start = to_timestamp(rule.get("start_date"))
        if pd.isna(start):
            raise ReportValidationError(f"Scenario rule {rule.get('id')!r} has no valid start_date")
        recurrence = rule.get("recurrence") or None
        if recurrence is not None and recurrence not in RECURRENCES:
            raise ReportValidationError(f"Unknown recurrence {recurrence!r} on scenario rule {rule.get('id')!r}")

        end = horizon
        rule_end = to_timestamp(rule.get("end_date"))
        if not pd.isna(rule_end):
            end = min(end, rule_end)

        category = embedded(rule, "categories", "category")
        account = embedded(rule, "accounts", "account")
        skip_weekends = coerce_bool(rule.get("exclude_weekends"))
        for day in _rule_dates(start, end, recurrence):
            if skip_weekends and day.weekday() >= 5:
                continue
            instances.append(
                {
                    "id": rule.get("id"),
                    "instance_id": f"{rule.get('id')}-{day:%Y%m%d}",
                    "name": rule.get("name"),
                    "amount": coerce_float(rule.get("amount")),
                    "type": rule.get("type"),
                    "date": day.date().isoformat(),
                    "description": rule.get("description"),
                    "category_id": rule.get("category_id"),
                    "account_id": rule.get("account_id"),
                    "scenario_id": rule.get("scenario_id"),
                    "is_projected": True,
                    "category_name": category.get("name"),
                    "account_name": account.get("name"),
                }
            )

    instances.sort(key=lambda instance: instance["date"])
    return instances
