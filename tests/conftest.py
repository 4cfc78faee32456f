"""Shared fixtures for the ledger analytics test-suite."""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.settings import Settings  # noqa: E402

CATEGORIES = {
    1: {"name": "Food", "type": "expense", "stability_type": "variable"},
    2: {"name": "Rent", "type": "expense", "stability_type": "fixed"},
    3: {"name": "Travel", "type": "expense", "stability_type": "occasional"},
    4: {"name": "Salary", "type": "income", "stability_type": "fixed"},
}


def txn(tx_id, kind, amount, day, category_id=None, *, user_id="u1", account_id=10, account="Checking"):
    """Build a store-shaped transaction row joined with its category and account."""

    return {
        "id": tx_id,
        "user_id": user_id,
        "type": kind,
        "amount": amount,
        "date": day,
        "category_id": category_id,
        "account_id": account_id,
        "categories": CATEGORIES.get(category_id),
        "accounts": {"name": account},
    }


def line(item_id, name, day, quantity, net, *, tax_rate=None, exempt=None, category_id=1, user_id="u1", total=None):
    """Build a store-shaped transaction item row joined with item, tax and parent transaction."""

    return {
        "transaction_id": f"t-{item_id}-{day}",
        "item_id": item_id,
        "quantity": quantity,
        "unit_price_net": net,
        "tax_rate_used": tax_rate,
        "is_exempt_used": exempt,
        "line_total_final": total,
        "items": {"name": name, "taxes": None},
        "transactions": {"date": day, "user_id": user_id, "categories": CATEGORIES.get(category_id)},
    }


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def fixed_clock():
    return lambda: datetime(2025, 3, 15, 10, 30)
