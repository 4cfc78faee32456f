"""Tests for purchase-cadence restock forecasting."""

from __future__ import annotations

from datetime import date

import pytest

from analytics.frames import prepare_items
from analytics.restock import build_cadence_profiles, forecast_restock, purchase_gaps, typical_gap, unit_cost
from conftest import line
from core.models import PurchaseSnapshot


@pytest.mark.parametrize(
    ("gaps", "expected"),
    [
        ([2, 3, 2, 3], 2),
        ([1, 1, 3], 1),
        ([4], 4),
        ([], None),
    ],
)
def test_typical_gap_prefers_mode_then_shortest(gaps, expected):
    assert typical_gap(gaps) == expected


def test_purchase_gaps_use_distinct_months_across_years():
    assert purchase_gaps(["2024-11", "2025-01", "2025-01", "2025-02"]) == [2, 1]


def test_item_bought_every_other_month_is_due():
    items = prepare_items(
        [
            line(1, "Coffee beans", "2025-01-10", 1, 8.0, tax_rate=10),
            line(1, "Coffee beans", "2025-03-12", 2, 2.0, tax_rate=10),
            line(1, "Coffee beans", "2025-03-20", 1, 2.0, tax_rate=10),
        ]
    )
    report = forecast_restock(items, date(2025, 4, 2))
    assert report["meta"] == {
        "months_considered": ["2024-11", "2024-12", "2025-01", "2025-02", "2025-03", "2025-04"],
        "next_month": "2025-05",
        "excludes_occasional": True,
        "cost_includes_item_tax": True,
    }
    assert report["data"] == [
        {
            "item_id": 1,
            "item_name": "Coffee beans",
            "gap_months": 2,
            "projected_next_month_qty": 3.0,
            "projected_next_month_cost": 6.6,
        }
    ]


def test_items_off_cadence_or_single_month_are_not_surfaced():
    items = prepare_items(
        [
            line(1, "Rice", "2025-02-01", 1, 3.0),
            line(1, "Rice", "2025-03-01", 1, 3.0),
            line(2, "Salt", "2025-03-03", 1, 1.0),
            line(3, "Sunscreen", "2025-01-10", 1, 9.0, category_id=3),
            line(3, "Sunscreen", "2025-03-10", 1, 9.0, category_id=3),
        ]
    )
    assert forecast_restock(items, date(2025, 4, 2))["data"] == []


def test_purchases_outside_window_are_ignored():
    items = prepare_items(
        [
            line(1, "Filters", "2024-09-01", 1, 5.0),
            line(1, "Filters", "2025-03-01", 1, 5.0),
        ]
    )
    assert forecast_restock(items, date(2025, 3, 20))["data"] == []


def test_restock_rows_are_sorted_by_cost():
    items = prepare_items(
        [
            line(1, "Soap", "2025-02-01", 1, 2.0),
            line(1, "Soap", "2025-03-01", 1, 2.0),
            line(2, "Detergent", "2025-02-05", 1, 12.0),
            line(2, "Detergent", "2025-03-05", 1, 12.0),
        ]
    )
    report = forecast_restock(items, date(2025, 3, 20))
    assert [row["item_name"] for row in report["data"]] == ["Detergent", "Soap"]
    assert all(row["gap_months"] == 1 for row in report["data"])


def test_latest_purchase_snapshot_is_kept():
    items = prepare_items(
        [
            line(1, "Tea", "2025-03-01", 1, 4.0, tax_rate=21, exempt=True),
            line(1, "Tea", "2025-01-01", 1, 3.0),
        ]
    )
    profile = build_cadence_profiles(items)[1]
    assert profile.per_month_qty == {"2025-01": 1.0, "2025-03": 1.0}
    assert profile.last_purchase.net_price == 4.0
    assert unit_cost(profile.last_purchase) == pytest.approx(4.0)


def test_unit_cost_falls_back_to_line_total():
    snapshot = PurchaseSnapshot(date=date(2025, 3, 1), net_price=0.0, tax_rate=0.0, is_exempt=False, line_total=9.0, quantity=3.0)
    assert unit_cost(snapshot) == pytest.approx(3.0)
