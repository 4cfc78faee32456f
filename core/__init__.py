"""Core domain package for the ledger analytics engine.

The report service lives in :mod:`core.report_service` and is imported from
there; this package only exposes the leaf modules the analytics layer uses.
"""

from .errors import ReportValidationError, RowStoreError
from .formatting import coerce_bool, coerce_float, relative_change, safe_ratio, to_money
from .models import MonthlyAverages, ScenarioFactors
from .store import InMemoryRowStore, RowFilters, RowStore

__all__ = [
    "ReportValidationError",
    "RowStoreError",
    "coerce_bool",
    "coerce_float",
    "relative_change",
    "safe_ratio",
    "to_money",
    "MonthlyAverages",
    "ScenarioFactors",
    "InMemoryRowStore",
    "RowFilters",
    "RowStore",
]
