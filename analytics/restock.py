"""Purchase-cadence detection and next-month restock forecasting."""

from __future__ import annotations

from collections import Counter
from typing import Hashable, Iterable, Optional

import pandas as pd

from analytics.periods import DateLike, key_from_index, month_index, next_month, trailing_months
from analytics.valuation import gross_amount
from core.formatting import to_money
from core.models import CadenceProfile, PurchaseSnapshot, RestockReport, RestockRow

__all__ = [
    "build_cadence_profiles",
    "purchase_gaps",
    "typical_gap",
    "unit_cost",
    "forecast_restock",
]


def _item_key(value: object) -> Optional[Hashable]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if hasattr(value, "item"):
        value = value.item()
    return value


def build_cadence_profiles(items: pd.DataFrame) -> dict[Hashable, CadenceProfile]:
    """Monthly purchased quantity and latest purchase per item.

    Rows without an item id or a date cannot contribute to a cadence and are
    skipped.
    """

    usable = items[items["item_id"].notna() & items["date"].notna()]
    usable = usable.sort_values("date", kind="mergesort")

    profiles: dict[Hashable, CadenceProfile] = {}
    for row in usable.to_dict(orient="records"):
        key = _item_key(row["item_id"])
        profile = profiles.get(key)
        if profile is None:
            profile = profiles[key] = CadenceProfile(item_id=key, item_name=str(row["item_name"]))

        month = row["month"]
        profile.per_month_qty[month] = profile.per_month_qty.get(month, 0.0) + float(row["quantity"])
        final_total = row["line_total_final"]
        profile.last_purchase = PurchaseSnapshot(
            date=pd.Timestamp(row["date"]).date(),
            net_price=float(row["unit_price_net"]),
            tax_rate=float(row["tax_rate"]),
            is_exempt=bool(row["is_exempt"]),
            line_total=None if pd.isna(final_total) else float(final_total),
            quantity=float(row["quantity"]),
        )
    return profiles


def purchase_gaps(months: Iterable[str]) -> list[int]:
    """Month distances between consecutive distinct purchase months."""

    indices = sorted({month_index(month) for month in months})
    return [later - earlier for earlier, later in zip(indices, indices[1:])]


def typical_gap(gaps: Iterable[int]) -> Optional[int]:
    """Most frequent gap; ties go to the shortest one."""

    counts = Counter(gaps)
    if not counts:
        return None
    best = max(counts.values())
    return min(gap for gap, count in counts.items() if count == best)


def unit_cost(snapshot: PurchaseSnapshot) -> float:
    """Tax-inclusive price of a single unit at the latest purchase."""

    if snapshot.net_price > 0:
        return gross_amount(snapshot.net_price, 1, snapshot.tax_rate, snapshot.is_exempt)
    if snapshot.line_total is not None and snapshot.quantity:
        return snapshot.line_total / snapshot.quantity
    return 0.0


def forecast_restock(
    items: pd.DataFrame,
    reference: DateLike,
    *,
    months: int = 6,
) -> RestockReport:
    """Items expected to be bought again next month.

    Parameters
    ----------
    items:
        Prepared item rows (see :func:`analytics.frames.prepare_items`).
        Rows outside the trailing window and rows in ``occasional``
        categories are ignored.
    reference:
        Instant whose month closes the window.
    months:
        Length of the trailing window, reference month included.

    Returns
    -------
    RestockReport
        Items whose typical gap lands exactly on the month after ``reference``,
        most expensive first.
    """

    window = trailing_months(months, reference)
    upcoming = next_month(reference)
    upcoming_index = month_index(upcoming)

    scoped = items[items["month"].isin(window) & (items["stability_type"] != "occasional")]

    rows: list[RestockRow] = []
    for profile in build_cadence_profiles(scoped).values():
        gap = typical_gap(purchase_gaps(profile.per_month_qty))
        if gap is None or profile.last_purchase is None:
            continue

        last_index = max(month_index(month) for month in profile.per_month_qty)
        if last_index + gap != upcoming_index:
            continue

        quantity = profile.per_month_qty[key_from_index(last_index)]
        rows.append(
            {
                "item_id": profile.item_id,
                "item_name": profile.item_name,
                "gap_months": gap,
                "projected_next_month_qty": quantity,
                "projected_next_month_cost": quantity * unit_cost(profile.last_purchase),
            }
        )

    rows.sort(key=lambda row: (-row["projected_next_month_cost"], row["item_name"].casefold()))
    for row in rows:
        row["projected_next_month_cost"] = to_money(row["projected_next_month_cost"])

    return {
        "meta": {
            "months_considered": window,
            "next_month": upcoming,
            "excludes_occasional": True,
            "cost_includes_item_tax": True,
        },
        "data": rows,
    }
