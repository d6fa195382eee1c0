"""
Ledger engine package.

Currency conversion, the connection directory, the live ledger view and
the pure filter/aggregation/export functions over its records.
"""

from src.ledger.aggregation import aggregate_month
from src.ledger.connections import ConnectionDirectory
from src.ledger.currency import (
    AmountEntry,
    CurrencyConverter,
    apply_update_policy,
    parse_amount,
)
from src.ledger.errors import (
    LedgerError,
    NotFoundError,
    ReadOnlyLedgerError,
    StoreError,
    TargetNotFoundError,
    ValidationError,
)
from src.ledger.export import build_export, export_filename, export_rows
from src.ledger.filters import apply_filter
from src.ledger.view import LedgerView

__all__ = [
    # Currency
    "AmountEntry",
    "CurrencyConverter",
    "apply_update_policy",
    "parse_amount",
    # Connections
    "ConnectionDirectory",
    # View
    "LedgerView",
    # Pure functions
    "aggregate_month",
    "apply_filter",
    "build_export",
    "export_filename",
    "export_rows",
    # Errors
    "LedgerError",
    "NotFoundError",
    "ReadOnlyLedgerError",
    "StoreError",
    "TargetNotFoundError",
    "ValidationError",
]
