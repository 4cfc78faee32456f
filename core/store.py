"""Read interface consumed by the report service, plus an in-memory implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

import pandas as pd

from core.errors import RowStoreError

__all__ = ["TABLES", "RowFilters", "RowStore", "InMemoryRowStore"]

logger = logging.getLogger(__name__)

TABLES = (
    "transactions",
    "categories",
    "accounts",
    "budgets",
    "goals",
    "items",
    "taxes",
    "transaction_items",
    "item_prices",
    "scenario_transactions",
)


@dataclass(frozen=True)
class RowFilters:
    """Equality and range constraints applied by the store.

    Dates are inclusive. For item lines, ``user_id`` and the date bounds apply
    to the parent transaction when the line itself does not carry them.
    """

    user_id: Optional[Any] = None
    type: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    category_id: Optional[Any] = None
    month: Optional[str] = None
    month_from: Optional[str] = None
    month_to: Optional[str] = None
    item_ids: Optional[Sequence[Any]] = None
    scenario_id: Optional[Any] = None

    def describe(self) -> str:
        parts = [f"{f.name}={getattr(self, f.name)!r}" for f in fields(self) if getattr(self, f.name) is not None]
        return ", ".join(parts) or "no filters"


class RowStore(Protocol):
    def fetch_rows(self, table: str, filters: RowFilters) -> list[Mapping[str, Any]]:
        """Return rows of ``table`` matching ``filters``.

        Implementations raise :class:`core.errors.RowStoreError` when the
        read cannot be completed.
        """


def _parent(row: Mapping[str, Any]) -> Mapping[str, Any]:
    for name in ("transactions", "transaction"):
        value = row.get(name)
        if isinstance(value, Mapping):
            return value
        if isinstance(value, (list, tuple)) and value and isinstance(value[0], Mapping):
            return value[0]
    return {}


def _field(row: Mapping[str, Any], name: str) -> Any:
    value = row.get(name)
    if value is None:
        value = _parent(row).get(name)
    return value


def _same(left: Any, right: Any) -> bool:
    return left is not None and str(left) == str(right)


def _day(value: Any) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    try:
        stamp = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(stamp):
        return None
    if stamp.tzinfo is not None:
        stamp = stamp.tz_localize(None)
    return stamp.normalize()


def _matches(row: Mapping[str, Any], filters: RowFilters) -> bool:
    if filters.user_id is not None and not _same(_field(row, "user_id"), filters.user_id):
        return False
    if filters.type is not None and row.get("type") != filters.type:
        return False
    if filters.category_id is not None and not _same(row.get("category_id"), filters.category_id):
        return False
    if filters.scenario_id is not None and not _same(row.get("scenario_id"), filters.scenario_id):
        return False
    if filters.item_ids is not None and str(row.get("item_id")) not in {str(i) for i in filters.item_ids}:
        return False

    if filters.date_from is not None or filters.date_to is not None:
        day = _day(_field(row, "date"))
        if day is None:
            return False
        if filters.date_from is not None and day < _day(filters.date_from):
            return False
        if filters.date_to is not None and day > _day(filters.date_to):
            return False

    month = row.get("month")
    if filters.month is not None and (month is None or str(month)[:7] != filters.month):
        return False
    if filters.month_from is not None and (month is None or str(month)[:7] < filters.month_from):
        return False
    if filters.month_to is not None and (month is None or str(month)[:7] > filters.month_to):
        return False
    return True


class InMemoryRowStore:
    """Row store over pre-joined row lists, keyed by table name."""

    def __init__(self, tables: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None) -> None:
        self._tables: dict[str, list[Mapping[str, Any]]] = {name: [] for name in TABLES}
        for name, rows in (tables or {}).items():
            self._tables[name] = list(rows)

    def fetch_rows(self, table: str, filters: RowFilters) -> list[Mapping[str, Any]]:
        if table not in self._tables:
            raise RowStoreError(table, "unknown table")
        rows = [dict(row) for row in self._tables[table] if _matches(row, filters)]
        logger.debug("Fetched %d %s row(s) with %s", len(rows), table, filters.describe())
        return rows
