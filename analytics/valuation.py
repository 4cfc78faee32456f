"""Tax-inclusive valuation of itemised purchase lines."""

from __future__ import annotations

import math
from typing import Any, Mapping

import numpy as np
import pandas as pd

from core.formatting import coerce_bool, coerce_float, embedded

__all__ = [
    "effective_tax_rate",
    "gross_amount",
    "resolve_line",
    "line_amount",
    "line_amounts",
]


def effective_tax_rate(tax_rate: Any, is_exempt: Any) -> float:
    """Return the tax percentage that actually applies to a line.

    An exempt flag always wins over the stored rate, and a missing rate (no
    tax record) counts as untaxed.
    """

    if coerce_bool(is_exempt):
        return 0.0
    return coerce_float(tax_rate)


def gross_amount(
    net_unit_price: Any,
    quantity: Any,
    tax_rate: Any = None,
    is_exempt: Any = False,
) -> float:
    """Return ``net * quantity * (1 + rate / 100)`` with exemption applied."""

    rate = effective_tax_rate(tax_rate, is_exempt)
    return coerce_float(net_unit_price) * coerce_float(quantity) * (1 + rate / 100)


def _first(*values: Any) -> Any:
    for value in values:
        if value is None or (isinstance(value, float) and pd.isna(value)):
            continue
        return value
    return None


def resolve_line(row: Mapping[str, Any]) -> dict[str, Any]:
    """Normalise the pricing fields of a purchase line.

    Accepts raw store rows as well as records of a prepared item frame.

    - The tax snapshot on the line (``tax_rate_used`` / ``is_exempt_used``)
      wins over the item's current tax record; a line with neither is untaxed.
    - ``unit_price_net`` falls back to the legacy ``price`` column.
    - A missing quantity counts as one unit.
    - A missing ``line_total_final`` is ``nan``.
    """

    tax = embedded(embedded(row, "items", "item"), "taxes", "tax")
    return {
        "quantity": coerce_float(row.get("quantity"), default=1.0),
        "unit_price_net": coerce_float(_first(row.get("unit_price_net"), row.get("price"))),
        "tax_rate": coerce_float(_first(row.get("tax_rate_used"), row.get("tax_rate"), tax.get("rate"))),
        "is_exempt": coerce_bool(_first(row.get("is_exempt_used"), row.get("is_exempt"), tax.get("is_exempt"))),
        "line_total_final": coerce_float(row.get("line_total_final"), default=float("nan")),
    }


def line_amount(row: Mapping[str, Any]) -> float:
    """Amount of a purchase line, preferring the stored final total.

    Shopping-list lines carry ``line_total_final`` (discount and tax applied
    when the transaction was created). Older rows without it are valued from
    their net price, quantity and tax, resolved by :func:`resolve_line`.
    """

    resolved = resolve_line(row)
    if not math.isnan(resolved["line_total_final"]):
        return resolved["line_total_final"]
    return gross_amount(
        resolved["unit_price_net"],
        resolved["quantity"],
        resolved["tax_rate"],
        resolved["is_exempt"],
    )


def line_amounts(items: pd.DataFrame) -> pd.Series:
    """Vectorised :func:`line_amount` over a prepared item frame."""

    if items.empty:
        return pd.Series(dtype=float, index=items.index)

    net = pd.to_numeric(items["unit_price_net"], errors="coerce").fillna(0.0).to_numpy(dtype=float)
    quantity = pd.to_numeric(items["quantity"], errors="coerce").fillna(1.0).to_numpy(dtype=float)
    rate = pd.to_numeric(items["tax_rate"], errors="coerce").fillna(0.0).to_numpy(dtype=float)
    exempt = items["is_exempt"].fillna(False).astype(bool).to_numpy()

    gross = net * quantity * (1 + np.where(exempt, 0.0, rate) / 100)
    final_total = pd.to_numeric(items["line_total_final"], errors="coerce").to_numpy(dtype=float)
    amounts = np.where(np.isnan(final_total), gross, final_total)
    return pd.Series(amounts, index=items.index, dtype=float)
