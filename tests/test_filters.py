"""Tests for the filter engine."""

from datetime import date

from src.ledger import apply_filter
from src.models import ExpenseCategory, LedgerFilter

from tests.conftest import make_record


RECORDS = [
    make_record("a", date(2024, 1, 31), ExpenseCategory.FOOD, "10", "26.70", created_offset=3),
    make_record("b", date(2024, 2, 1), ExpenseCategory.TRANSPORT, "5", "13.35", created_offset=2),
    make_record("c", date(2024, 2, 29), ExpenseCategory.RENT, "900", "2403.00", created_offset=1),
    make_record("d", date(2024, 3, 1), ExpenseCategory.FOOD, "12", "32.04", created_offset=0),
]


class TestApplyFilter:
    """Date range and category filtering."""

    def test_bounds_are_inclusive(self):
        ledger_filter = LedgerFilter(start=date(2024, 2, 1), end=date(2024, 2, 29))
        assert [r.id for r in apply_filter(RECORDS, ledger_filter)] == ["b", "c"]

    def test_empty_category_set_matches_all(self):
        ledger_filter = LedgerFilter(start=date(2024, 1, 1), end=date(2024, 12, 31))
        assert len(apply_filter(RECORDS, ledger_filter)) == 4

    def test_category_set_restricts(self):
        ledger_filter = LedgerFilter(
            start=date(2024, 1, 1),
            end=date(2024, 12, 31),
            categories=frozenset({ExpenseCategory.FOOD}),
        )
        assert [r.id for r in apply_filter(RECORDS, ledger_filter)] == ["a", "d"]

    def test_single_day_range(self):
        ledger_filter = LedgerFilter(start=date(2024, 3, 1), end=date(2024, 3, 1))
        assert [r.id for r in apply_filter(RECORDS, ledger_filter)] == ["d"]

    def test_input_order_preserved(self):
        ledger_filter = LedgerFilter(start=date(2024, 1, 1), end=date(2024, 12, 31))
        reversed_records = list(reversed(RECORDS))
        assert apply_filter(reversed_records, ledger_filter) == reversed_records

    def test_no_match(self):
        ledger_filter = LedgerFilter(
            start=date(2024, 1, 1),
            end=date(2024, 12, 31),
            categories=frozenset({ExpenseCategory.MEDICAL}),
        )
        assert apply_filter(RECORDS, ledger_filter) == []
