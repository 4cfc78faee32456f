"""Load CSV exports of the ledger tables into an in-memory row store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Final, Mapping

import pandas as pd

from core.store import TABLES, InMemoryRowStore

__all__ = ["read_table", "load_store"]

logger = logging.getLogger(__name__)

Row = dict[str, Any]

_CATEGORY_FIELDS: Final = ("name", "type", "stability_type")


def read_table(path: str | Path) -> list[Row]:
    """Return the rows of one CSV export with blanks as ``None``.

    Every column is read as text so identifiers keep their exact form (a
    nullable integer column would otherwise come back as floats); numeric and
    boolean fields are coerced later by the analytics layer.
    """

    frame = pd.read_csv(path, dtype=str, keep_default_na=True)
    frame = frame.astype(object).where(frame.notna(), None)
    return frame.to_dict(orient="records")


def _index(rows: list[Row]) -> dict[str, Row]:
    return {str(row["id"]): row for row in rows if row.get("id") is not None}


def _pick(row: Mapping[str, Any] | None, names: tuple[str, ...]) -> Row | None:
    if row is None:
        return None
    return {name: row.get(name) for name in names}


def _lookup(index: Mapping[str, Row], key: Any) -> Row | None:
    if key is None:
        return None
    return index.get(str(key))


def load_store(directory: str | Path) -> InMemoryRowStore:
    """Read every known table from ``directory`` and join relations into nested rows.

    Missing CSV files load as empty tables; a missing directory is an error.
    """

    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Data directory not found: {root}")

    raw: dict[str, list[Row]] = {}
    for table in TABLES:
        path = root / f"{table}.csv"
        if path.exists():
            raw[table] = read_table(path)
            logger.debug("Loaded %d row(s) from %s", len(raw[table]), path)
        else:
            raw[table] = []
            logger.info("No %s export found in %s; treating the table as empty", table, root)

    categories = _index(raw["categories"])
    accounts = _index(raw["accounts"])
    taxes = _index(raw["taxes"])

    items = raw["items"]
    for item in items:
        item["taxes"] = _pick(_lookup(taxes, item.get("tax_id")), ("rate", "is_exempt"))
    items_by_id = _index(items)

    transactions = raw["transactions"]
    for transaction in transactions:
        transaction["categories"] = _pick(_lookup(categories, transaction.get("category_id")), _CATEGORY_FIELDS)
        transaction["accounts"] = _pick(_lookup(accounts, transaction.get("account_id")), ("name",))
    transactions_by_id = _index(transactions)

    for line in raw["transaction_items"]:
        item = _lookup(items_by_id, line.get("item_id"))
        parent = _lookup(transactions_by_id, line.get("transaction_id"))
        line["items"] = None if item is None else {"name": item.get("name"), "taxes": item.get("taxes")}
        line["transactions"] = None if parent is None else {
            "id": parent.get("id"),
            "date": parent.get("date"),
            "user_id": parent.get("user_id"),
            "categories": parent.get("categories"),
        }

    for budget in raw["budgets"]:
        budget["categories"] = _pick(_lookup(categories, budget.get("category_id")), ("name",))

    for price in raw["item_prices"]:
        price["items"] = _pick(_lookup(items_by_id, price.get("item_id")), ("name",))

    for rule in raw["scenario_transactions"]:
        rule["categories"] = _pick(_lookup(categories, rule.get("category_id")), ("name",))
        rule["accounts"] = _pick(_lookup(accounts, rule.get("account_id")), ("name",))

    return InMemoryRowStore(raw)
