"""Tests for month-to-month comparative diffing."""

from __future__ import annotations

import pytest

from analytics.comparison import compare_categories, compare_items, diff_percent
from analytics.frames import prepare_items, prepare_transactions
from config.settings import UNCATEGORIZED_LABEL
from conftest import line, txn


def _expenses(rows):
    frame = prepare_transactions(rows)
    return frame[frame["type"] == "expense"]


def _named(rows):
    """Expense rows for ad-hoc categories: ``(category_id, name, amount)``."""

    result = []
    for index, (category_id, name, amount) in enumerate(rows):
        row = txn(index, "expense", amount, "2025-01-10", category_id)
        row["categories"] = {"name": name, "stability_type": "variable"}
        result.append(row)
    return _expenses(result)


def test_diff_percent_rules():
    assert diff_percent(200, 250) == pytest.approx(25.0)
    assert diff_percent(0, 40) == 100.0
    assert diff_percent(0, 0) == 0.0
    assert diff_percent(80, 0) == pytest.approx(-100.0)


def test_three_tier_ordering():
    first = _named([(1, "Alpha", 10), (2, "Beta", 10), (3, "Coffee", 5), (4, "Books", 5), (5, "Eggs", 20), (6, "Fuel", 50)])
    second = _named([(1, "Alpha", 60), (2, "Beta", 20), (3, "Coffee", 5), (4, "Books", 5), (5, "Eggs", 15), (6, "Fuel", 10)])
    report = compare_categories(first, second, month1="2025-01", month2="2025-02")
    assert [row["category_name"] for row in report["data"]] == ["Alpha", "Beta", "Books", "Coffee", "Fuel", "Eggs"]
    assert [row["diff"] for row in report["data"]] == [50.0, 10.0, 0.0, 0.0, -40.0, -5.0]


def test_new_spend_counts_as_full_increase():
    first = _named([(1, "Alpha", 10)])
    second = _named([(1, "Alpha", 10), (2, "Gym", 35)])
    report = compare_categories(first, second, month1="2025-01", month2="2025-02")
    gym = next(row for row in report["data"] if row["category_name"] == "Gym")
    assert gym["month1_total"] == 0.0
    assert gym["diff_percent"] == 100.0
    assert report["meta"] == {"month1": "2025-01", "month2": "2025-02", "month1_total": 10.0, "month2_total": 45.0}


def test_diff_is_antisymmetric():
    first = _named([(1, "Alpha", 10.25), (2, "Beta", 99.99), (3, "Gamma", 7)])
    second = _named([(1, "Alpha", 30), (3, "Gamma", 3.5), (4, "Delta", 12)])
    forward = {row["category_id"]: row["diff"] for row in compare_categories(first, second, month1="a", month2="b")["data"]}
    backward = {row["category_id"]: row["diff"] for row in compare_categories(second, first, month1="b", month2="a")["data"]}
    assert forward.keys() == backward.keys()
    for key, diff in forward.items():
        assert diff == pytest.approx(-backward[key])


def test_display_name_prefers_second_period():
    first = _named([(1, "Groceries", 10)])
    second = _named([(1, "Supermarket", 12)])
    report = compare_categories(first, second, month1="2025-01", month2="2025-02")
    assert report["data"][0]["category_name"] == "Supermarket"


def test_item_comparison_uses_tax_inclusive_amounts():
    first = prepare_items([line(1, "Milk", "2025-01-05", 2, 1.0, tax_rate=10)])
    second = prepare_items([line(1, "Milk", "2025-02-05", 3, 1.0, tax_rate=10), line(2, "Tea", "2025-02-07", 1, 4.0)])
    report = compare_items(first, second, month1="2025-01", month2="2025-02")
    assert [row["item_name"] for row in report["data"]] == ["Tea", "Milk"]
    milk = report["data"][1]
    assert milk["month1_total"] == pytest.approx(2.2)
    assert milk["month2_total"] == pytest.approx(3.3)
    assert milk["diff_percent"] == pytest.approx(50.0)
    assert report["meta"]["month2_total"] == pytest.approx(7.3)


def test_empty_periods_produce_empty_report():
    empty = _expenses([])
    report = compare_categories(empty, empty, month1="2025-01", month2="2025-02")
    assert report["data"] == []
    assert report["meta"]["month1_total"] == 0.0


def test_rows_without_category_form_one_group():
    first = _expenses(
        [
            txn(1, "expense", 5, "2025-01-03"),
            txn(2, "expense", 7, "2025-01-04"),
            txn(3, "expense", 10, "2025-01-05", 1),
        ]
    )
    second = _expenses(
        [
            txn(4, "expense", 20, "2025-02-03"),
            txn(5, "expense", 10, "2025-02-05", 1),
            txn(6, "expense", 2.5, "2025-02-06", 1),
        ]
    )
    report = compare_categories(first, second, month1="2025-01", month2="2025-02")
    assert [(row["category_id"], row["category_name"]) for row in report["data"]] == [
        (None, UNCATEGORIZED_LABEL),
        (1, "Food"),
    ]
    assert [(row["month1_total"], row["month2_total"]) for row in report["data"]] == [(12.0, 20.0), (10.0, 12.5)]
