"""
Export of the visible (filtered) records.

Row contract: one row per record, tab-separated, columns
date, category, description, amount_primary, amount_secondary,
no header row.
"""

import io
from typing import Iterable

import pandas as pd

from src.models.expense import ExpenseRecord
from src.models.ledger import ExportFile, LedgerFilter


EXPORT_COLUMNS = [
    "date",
    "category",
    "description",
    "amount_primary",
    "amount_secondary",
]


def export_filename(ledger_filter: LedgerFilter) -> str:
    """File name embedding the filter's date bounds."""
    return f"expenses_{ledger_filter.start.isoformat()}_{ledger_filter.end.isoformat()}.csv"


def export_rows(records: Iterable[ExpenseRecord]) -> list[list[str]]:
    """Records as string rows in export column order."""
    return [
        [
            r.date.isoformat(),
            r.category.value,
            r.description or "",
            f"{r.amount_primary:.2f}",
            f"{r.amount_secondary:.2f}",
        ]
        for r in records
    ]


def build_export(
    records: Iterable[ExpenseRecord],
    ledger_filter: LedgerFilter,
) -> ExportFile:
    """
    Render the records as tab-separated text.

    The caller passes the already-filtered visible subset; this function
    does not re-apply the filter.
    """
    rows = export_rows(records)
    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS, dtype=str)

    buffer = io.StringIO()
    df.to_csv(buffer, sep="\t", header=False, index=False, lineterminator="\n")

    return ExportFile(
        filename=export_filename(ledger_filter),
        content=buffer.getvalue(),
        row_count=len(rows),
    )
