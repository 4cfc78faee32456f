"""Item-level rollups over prepared transaction-item frames."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

import pandas as pd

from analytics.frames import embedded, to_timestamp
from analytics.rollups import rollup
from config.settings import UNNAMED_LABEL
from core.formatting import coerce_float, to_money

__all__ = [
    "top_items_by_quantity",
    "top_items_by_value",
    "item_trend",
    "item_price_trend",
]


def top_items_by_quantity(items: pd.DataFrame, limit: int = 10) -> list[dict[str, Any]]:
    """Most purchased items by unit count."""

    totals = rollup(items, "item_name", value="quantity")
    rows = [(str(r["item_name"]), float(r["total"])) for r in totals.to_dict(orient="records")]
    rows.sort(key=lambda pair: (-pair[1], pair[0]))
    return [{"item": name, "quantity": quantity} for name, quantity in rows[:limit]]


def top_items_by_value(items: pd.DataFrame, limit: int = 10) -> list[dict[str, Any]]:
    """Items with the largest tax-inclusive spend."""

    totals = rollup(items, "item_name", value="line_amount")
    rows = [(str(r["item_name"]), float(r["total"])) for r in totals.to_dict(orient="records")]
    rows.sort(key=lambda pair: (-pair[1], pair[0]))
    return [{"item": name, "total_spent": to_money(total)} for name, total in rows[:limit]]


def item_trend(items: pd.DataFrame, item_id: Any) -> list[dict[str, Any]]:
    """Monthly quantity and tax-inclusive spend for a single item."""

    selected = items[(items["item_id"].astype(str) == str(item_id)) & items["month"].notna()]
    quantities = rollup(selected, "month", value="quantity").set_index("month")["total"]
    totals = rollup(selected, "month", value="line_amount").set_index("month")["total"]
    return [
        {"month": month, "quantity": float(quantities[month]), "total": to_money(totals[month])}
        for month in sorted(quantities.index)
    ]


def item_price_trend(
    rows: Iterable[Mapping[str, Any]],
    *,
    unnamed_label: str = UNNAMED_LABEL,
) -> list[dict[str, Any]]:
    """Recorded price points ordered by date (undated points last)."""

    points: list[tuple[pd.Timestamp, dict[str, Any]]] = []
    for row in rows:
        item = embedded(row, "items", "item")
        name = item.get("name")
        points.append(
            (
                to_timestamp(row.get("date")),
                {
                    "item_id": row.get("item_id"),
                    "item_name": str(name).strip() if name else unnamed_label,
                    "price": to_money(coerce_float(row.get("price"))),
                    "date": row.get("date"),
                },
            )
        )
    points.sort(key=lambda point: (pd.isna(point[0]), point[0] if not pd.isna(point[0]) else pd.Timestamp.min))
    return [point for _, point in points]
