"""
Tests for Together Budget models

Test strategy:
1. Unit tests for individual components (models, converters, engines)
2. Flow tests against in-memory stores
3. No real Google Sheets calls in tests
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from src.models import (
    AggregationWindow,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseRecord,
    ExpenseUpdate,
    LedgerFilter,
    OperationResult,
    OperationStatus,
    SessionContext,
    UserProfile,
)

from tests.conftest import make_draft, make_record


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_category_labels_are_exact(self):
        """Category values are the labels shown and stored."""
        labels = [c.value for c in ExpenseCategory]
        assert len(labels) == 15
        assert "Self-Development" in labels
        assert "Internet & Phone" in labels
        assert labels[0] == "Food"
        assert labels[-1] == "Other"

    def test_draft_rounds_amounts(self):
        """Amounts are stored with two decimal places."""
        draft = make_draft(amount_primary="10.005", amount_secondary="26.713")
        assert draft.amount_primary == Decimal("10.01")
        assert draft.amount_secondary == Decimal("26.71")

    def test_draft_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            make_draft(amount_primary="-1")

    def test_draft_empty_description_is_none(self):
        draft = make_draft(description="   ")
        assert draft.description is None

    def test_draft_rejects_unknown_category(self):
        with pytest.raises(ValueError):
            ExpenseDraft(
                date=date(2024, 1, 1),
                category="Groceries",
                amount_primary=Decimal("1"),
                amount_secondary=Decimal("2.67"),
            )

    def test_record_from_draft(self):
        """The store stamps id, owner and timestamps onto a draft."""
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        record = ExpenseRecord.from_draft(make_draft(), "r1", "alice", created)
        assert record.id == "r1"
        assert record.owner_id == "alice"
        assert record.created_at == created
        assert record.updated_at == created
        assert record.amounts.primary == Decimal("100.00")
        assert record.amounts.secondary == Decimal("267.00")

    def test_record_updated_before_created_rejected(self):
        created = datetime(2024, 1, 2, tzinfo=timezone.utc)
        with pytest.raises(ValueError, match="updated_at cannot be before created_at"):
            ExpenseRecord(
                id="r1",
                owner_id="alice",
                date=date(2024, 1, 1),
                category=ExpenseCategory.FOOD,
                amount_primary=Decimal("1"),
                amount_secondary=Decimal("2.67"),
                created_at=created,
                updated_at=created - timedelta(days=1),
            )

    def test_record_with_changes_keeps_identity(self):
        record = make_record("r1", date(2024, 1, 1), amount_primary="5", amount_secondary="13.35")
        later = record.created_at + timedelta(minutes=5)
        changed = record.with_changes({"description": "Coffee"}, later)
        assert changed.id == "r1"
        assert changed.owner_id == "alice"
        assert changed.created_at == record.created_at
        assert changed.updated_at == later
        assert changed.description == "Coffee"

    def test_record_with_changes_rejects_owner_change(self):
        record = make_record("r1", date(2024, 1, 1))
        with pytest.raises(ValueError, match="cannot be updated"):
            record.with_changes({"owner_id": "bob"}, record.created_at)

    def test_store_dict_coercion(self):
        """Rows read back from a store become the same typed record."""
        record = make_record(
            "r1", date(2024, 3, 9), ExpenseCategory.RENT, "1200.50", "3205.34",
        )
        raw = record.to_store_dict()
        assert raw["category"] == "Rent"
        assert raw["description"] == ""
        assert ExpenseRecord.from_store_dict(raw) == record

    def test_store_dict_missing_field_rejected(self):
        raw = make_record("r1", date(2024, 3, 9)).to_store_dict()
        raw["amount_primary"] = ""
        with pytest.raises(ValueError):
            ExpenseRecord.from_store_dict(raw)


class TestExpenseUpdate:
    """Tests for partial updates."""

    def test_changes_only_contains_set_fields(self):
        update = ExpenseUpdate(amount_primary=Decimal("50"))
        assert update.changes() == {"amount_primary": Decimal("50.00")}
        assert not update.is_empty

    def test_empty_update(self):
        assert ExpenseUpdate().is_empty

    def test_owner_cannot_be_updated(self):
        with pytest.raises(ValueError):
            ExpenseUpdate(owner_id="bob")

    def test_required_field_cannot_be_cleared(self):
        with pytest.raises(ValueError, match="cannot be cleared"):
            ExpenseUpdate(category=None)

    def test_description_can_be_cleared(self):
        update = ExpenseUpdate(description="")
        assert update.changes() == {"description": None}


class TestLedgerModels:
    """Tests for filters, windows and results."""

    def test_filter_rejects_inverted_range(self):
        with pytest.raises(ValueError, match="end date cannot be before start"):
            LedgerFilter(start=date(2024, 2, 1), end=date(2024, 1, 1))

    def test_filter_for_month_bounds(self):
        ledger_filter = LedgerFilter.for_month(2024, 2)
        assert ledger_filter.start == date(2024, 2, 1)
        assert ledger_filter.end == date(2024, 2, 29)
        assert ledger_filter.categories == frozenset()

    def test_current_month_filter(self):
        ledger_filter = LedgerFilter.current_month(today=date(2023, 11, 17))
        assert ledger_filter.start == date(2023, 11, 1)
        assert ledger_filter.end == date(2023, 11, 30)

    def test_window_bounds_and_label(self):
        window = AggregationWindow(month=12, year=2023)
        assert window.first_day == date(2023, 12, 1)
        assert window.last_day == date(2023, 12, 31)
        assert window.contains(date(2023, 12, 31))
        assert not window.contains(date(2024, 1, 1))
        assert window.label == "December 2023"

    def test_window_rejects_invalid_month(self):
        with pytest.raises(ValueError):
            AggregationWindow(month=13, year=2024)

    def test_operation_result_ok(self):
        assert OperationResult.success("done").ok
        assert OperationResult(status=OperationStatus.CONFLICT, message="x").ok
        assert not OperationResult(status=OperationStatus.STORE_ERROR, message="x").ok


class TestProfileModels:
    """Tests for profiles and sessions."""

    def test_connections_deduplicated_in_order(self):
        profile = UserProfile(user_id="alice", connections=["bob", " carol ", "bob", ""])
        assert profile.connections == ["bob", "carol"]
        assert profile.active_partner == "bob"

    def test_no_partner_without_connections(self):
        assert UserProfile(user_id="alice").active_partner is None

    def test_session_requires_user_id(self):
        with pytest.raises(ValueError):
            SessionContext(user_id="  ")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            description="Expense created",
        )
        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.CONNECTION_ADDED,
            description="Connection added",
            details={"target_id": "bob"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "connection_added"
        assert log_dict["details"]["target_id"] == "bob"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            actor_id="alice",
            description="Expense deleted",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "expense_deleted"
        assert row[4] == "alice"
        assert row[11] == "True"

    def test_audit_event_builder_expense_created(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.expense_created(
            actor_id="alice",
            record_id="r1",
            category="Food",
            amount_primary="100.00",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.entity_id == "r1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_mutation_rejected(self):
        event = AuditEventBuilder.mutation_rejected(
            actor_id="alice",
            viewing_identity="bob",
            operation="delete",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "bob"
        assert event.details == {"operation": "delete"}
