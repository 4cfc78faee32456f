"""Exception types raised by the ledger analytics engine."""

from __future__ import annotations

__all__ = ["ReportValidationError", "RowStoreError"]


class ReportValidationError(ValueError):
    """Raised when report parameters are missing or malformed."""


class RowStoreError(RuntimeError):
    """Raised when the row store cannot satisfy a read."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"{table}: {message}")
        self.table = table
        self.message = message
