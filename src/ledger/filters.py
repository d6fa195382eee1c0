"""
Filter engine: the visible subset of a ledger view.

Pure functions over records. The same visible subset feeds the listing
and the export.
"""

from typing import Iterable

from src.models.expense import ExpenseRecord
from src.models.ledger import LedgerFilter


def apply_filter(
    records: Iterable[ExpenseRecord],
    ledger_filter: LedgerFilter,
) -> list[ExpenseRecord]:
    """
    Keep records whose date is within [start, end] (inclusive) and whose
    category is in the filter's set. An empty set keeps every category.

    Input order is preserved.
    """
    return [r for r in records if ledger_filter.matches(r)]
