"""Row normalisation helpers turning store rows into analysis frames.

Every report reads its rows through these helpers, so the fallback policies
live here and nowhere else: a missing category becomes the placeholder label,
a missing stability type becomes ``"variable"``, a missing tax record means
untaxed, and missing amounts count as zero.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

import pandas as pd

from analytics.periods import month_key
from analytics.valuation import line_amounts, resolve_line
from config.settings import UNCATEGORIZED_LABEL, UNNAMED_LABEL
from core.errors import ReportValidationError
from core.formatting import coerce_float, embedded

__all__ = [
    "DEFAULT_STABILITY",
    "STABILITY_TYPES",
    "TRANSACTION_COLUMNS",
    "ITEM_COLUMNS",
    "BUDGET_COLUMNS",
    "resolve_stability",
    "embedded",
    "to_timestamp",
    "prepare_transactions",
    "prepare_items",
    "prepare_budgets",
    "expenses_only",
    "incomes_only",
    "in_months",
]

logger = logging.getLogger(__name__)

DEFAULT_STABILITY = "variable"
STABILITY_TYPES = ("fixed", "variable", "occasional")

TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "type",
    "amount",
    "date",
    "month",
    "category_id",
    "category_name",
    "stability_type",
    "account_id",
    "account_name",
]

ITEM_COLUMNS = [
    "transaction_id",
    "item_id",
    "item_name",
    "quantity",
    "unit_price_net",
    "tax_rate",
    "is_exempt",
    "line_total_final",
    "line_amount",
    "date",
    "month",
    "category_name",
    "stability_type",
]

BUDGET_COLUMNS = ["id", "category_id", "category_name", "month", "limit_amount"]


def resolve_stability(value: Any) -> str:
    """Unclassified spend is treated as discretionary (``variable``)."""

    if value is None or (isinstance(value, float) and pd.isna(value)):
        return DEFAULT_STABILITY
    text = str(value).strip().lower()
    return text or DEFAULT_STABILITY


def _label(value: Any, placeholder: str) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return placeholder
    text = str(value).strip()
    return text or placeholder


def _optional(value: Any) -> Any:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    return value


def to_timestamp(value: Any) -> pd.Timestamp:
    if value is None:
        return pd.NaT
    try:
        timestamp = pd.Timestamp(value)
    except (TypeError, ValueError):
        return pd.NaT
    if pd.isna(timestamp):
        return pd.NaT
    if timestamp.tzinfo is not None:
        timestamp = timestamp.tz_localize(None)
    return timestamp.normalize()


def _keep_ids(frame: pd.DataFrame, records: list[dict[str, Any]], columns: tuple[str, ...]) -> None:
    # Identifiers stay as given; a nullable integer column would otherwise turn into floats.
    for column in columns:
        frame[column] = pd.Series([record[column] for record in records], index=frame.index, dtype=object)


def _attach_dates(frame: pd.DataFrame, raw_dates: list[Any], source: str) -> pd.DataFrame:
    dates = pd.Series([to_timestamp(value) for value in raw_dates], index=frame.index, dtype="datetime64[ns]")
    frame["date"] = dates
    frame["month"] = dates.dt.strftime("%Y-%m")
    undated = int(dates.isna().sum())
    if undated:
        logger.warning("%d %s row(s) have no usable date and are left out of month buckets", undated, source)
    return frame


def prepare_transactions(
    rows: Iterable[Mapping[str, Any]],
    *,
    uncategorized_label: str = UNCATEGORIZED_LABEL,
    unnamed_label: str = UNNAMED_LABEL,
) -> pd.DataFrame:
    """Flatten transaction rows (optionally joined with category/account) into a frame."""

    records: list[dict[str, Any]] = []
    raw_dates: list[Any] = []
    for row in rows:
        category = embedded(row, "categories", "category")
        account = embedded(row, "accounts", "account")
        records.append(
            {
                "id": _optional(row.get("id")),
                "user_id": _optional(row.get("user_id")),
                "type": _label(row.get("type"), "").lower(),
                "amount": coerce_float(row.get("amount")),
                "category_id": _optional(row.get("category_id")),
                "category_name": _label(category.get("name"), uncategorized_label),
                "stability_type": resolve_stability(category.get("stability_type")),
                "account_id": _optional(row.get("account_id")),
                "account_name": _label(account.get("name"), unnamed_label),
            }
        )
        raw_dates.append(row.get("date"))

    frame = pd.DataFrame.from_records(records, columns=[c for c in TRANSACTION_COLUMNS if c not in {"date", "month"}])
    _keep_ids(frame, records, ("id", "user_id", "category_id", "account_id"))
    frame["amount"] = frame["amount"].astype(float)
    frame = _attach_dates(frame, raw_dates, "transaction")
    return frame[TRANSACTION_COLUMNS]


def prepare_items(
    rows: Iterable[Mapping[str, Any]],
    *,
    unnamed_label: str = UNNAMED_LABEL,
    uncategorized_label: str = UNCATEGORIZED_LABEL,
) -> pd.DataFrame:
    """Flatten transaction-item rows and value each line tax-inclusively.

    Pricing fields go through :func:`analytics.valuation.resolve_line`, the
    same normalisation :func:`analytics.valuation.line_amount` applies.
    """

    records: list[dict[str, Any]] = []
    raw_dates: list[Any] = []
    for row in rows:
        item = embedded(row, "items", "item")
        transaction = embedded(row, "transactions", "transaction")
        category = embedded(transaction, "categories", "category")

        records.append(
            {
                "transaction_id": _optional(row.get("transaction_id", transaction.get("id"))),
                "item_id": _optional(row.get("item_id")),
                "item_name": _label(item.get("name"), unnamed_label),
                **resolve_line(row),
                "category_name": _label(category.get("name"), uncategorized_label),
                "stability_type": resolve_stability(category.get("stability_type")),
            }
        )
        raw_dates.append(transaction.get("date", row.get("date")))

    base_columns = [c for c in ITEM_COLUMNS if c not in {"date", "month", "line_amount"}]
    frame = pd.DataFrame.from_records(records, columns=base_columns)
    for column in ("quantity", "unit_price_net", "tax_rate", "line_total_final"):
        frame[column] = frame[column].astype(float)
    _keep_ids(frame, records, ("transaction_id", "item_id"))
    frame["is_exempt"] = frame["is_exempt"].astype(bool)
    frame["line_amount"] = line_amounts(frame)
    frame = _attach_dates(frame, raw_dates, "item")
    return frame[ITEM_COLUMNS]


def _budget_month(value: Any) -> Any:
    if _optional(value) is None:
        return None
    try:
        return month_key(str(value)[:7])
    except ReportValidationError:
        logger.warning("Ignoring budget with malformed month %r", value)
        return None


def prepare_budgets(
    rows: Iterable[Mapping[str, Any]],
    *,
    uncategorized_label: str = UNCATEGORIZED_LABEL,
) -> pd.DataFrame:
    records: list[dict[str, Any]] = []
    for row in rows:
        category = embedded(row, "categories", "category")
        records.append(
            {
                "id": _optional(row.get("id")),
                "category_id": _optional(row.get("category_id")),
                "category_name": _label(category.get("name"), uncategorized_label),
                "month": _budget_month(row.get("month")),
                "limit_amount": coerce_float(row.get("limit_amount")),
            }
        )
    frame = pd.DataFrame.from_records(records, columns=BUDGET_COLUMNS)
    _keep_ids(frame, records, ("id", "category_id"))
    frame["limit_amount"] = frame["limit_amount"].astype(float)
    return frame


def expenses_only(frame: pd.DataFrame) -> pd.DataFrame:
    return frame[frame["type"] == "expense"]


def incomes_only(frame: pd.DataFrame) -> pd.DataFrame:
    return frame[frame["type"] == "income"]


def in_months(frame: pd.DataFrame, months: Iterable[str]) -> pd.DataFrame:
    """Rows whose month key is one of ``months``."""

    return frame[frame["month"].isin(list(months))]
