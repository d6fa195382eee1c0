"""
Aggregation Engine

Groups one calendar month of records by category and sums each currency
independently.

DESIGN DECISION: The secondary-currency total is the sum of the stored
secondary amounts. It is never derived by converting the primary total,
so records whose two amounts drifted apart show up as a difference
between the two totals.

Percentage shares always use the primary-currency totals as their basis.
An empty month yields a summary with has_data == False and no shares.
"""

from decimal import Decimal
from typing import Iterable

from src.models.expense import ExpenseRecord
from src.models.ledger import AggregationWindow, CategoryTotal, MonthlySummary


def aggregate_month(
    records: Iterable[ExpenseRecord],
    window: AggregationWindow,
) -> MonthlySummary:
    """
    Summarize the records dated inside `window`.

    Records outside the window's first..last day (inclusive) are ignored.
    Categories appear in order of first occurrence.
    """
    groups: dict = {}
    total_primary = Decimal("0")
    total_secondary = Decimal("0")
    count = 0

    for record in records:
        if not window.contains(record.date):
            continue

        group = groups.get(record.category)
        if group is None:
            group = groups[record.category] = CategoryTotal()

        group.total_primary += record.amount_primary
        group.total_secondary += record.amount_secondary
        group.record_count += 1

        total_primary += record.amount_primary
        total_secondary += record.amount_secondary
        count += 1

    return MonthlySummary(
        window=window,
        categories=groups,
        total_primary=total_primary,
        total_secondary=total_secondary,
        record_count=count,
    )
