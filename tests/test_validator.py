"""Tests for expense form validation."""

from datetime import date
from decimal import Decimal

from src.models import ExpenseCategory
from src.validation import ExpenseInputValidator


TODAY = date(2024, 6, 15)


def validate(**overrides):
    values = {
        "date": "2024-06-01",
        "category": "Food",
        "description": "Groceries",
        "amount_primary": "100",
        "amount_secondary": "267",
    }
    values.update(overrides)
    return ExpenseInputValidator(today=TODAY).validate(**values)


class TestSchemaStage:
    """Errors that block saving."""

    def test_valid_input_builds_draft(self):
        result = validate()
        assert result.is_valid
        assert result.issues == []
        assert result.draft.category == ExpenseCategory.FOOD
        assert result.draft.amount_secondary == Decimal("267.00")

    def test_missing_date(self):
        result = validate(date="")
        assert not result.is_valid
        assert result.errors[0].field == "date"
        assert result.errors[0].issue_type == "missing"

    def test_malformed_date(self):
        result = validate(date="15/06/2024")
        assert result.errors[0].issue_type == "invalid_format"

    def test_unknown_category(self):
        result = validate(category="Groceries")
        assert [i.field for i in result.errors] == ["category"]

    def test_malformed_amount(self):
        result = validate(amount_secondary="lots")
        assert [i.field for i in result.errors] == ["amount_secondary"]
        assert result.draft is None

    def test_overlong_description(self):
        result = validate(description="x" * 501)
        assert [i.field for i in result.errors] == ["description"]


class TestSemanticStage:
    """Warnings that never block saving."""

    def test_future_date_warning(self):
        result = validate(date="2024-07-01")
        assert result.is_valid
        assert [i.issue_type for i in result.warnings] == ["future_date"]

    def test_old_date_warning(self):
        result = validate(date="2020-01-01")
        assert [i.issue_type for i in result.warnings] == ["suspicious_date"]

    def test_zero_amount_warning(self):
        result = validate(amount_primary="0", amount_secondary="0")
        assert [i.issue_type for i in result.warnings] == ["suspicious_value"]

    def test_pair_entered_from_secondary_is_consistent(self):
        result = validate(amount_primary="98.79", amount_secondary="267")
        assert result.warnings == []

    def test_mismatched_pair_warning(self):
        result = validate(amount_primary="100", amount_secondary="500")
        assert result.is_valid
        assert [i.issue_type for i in result.warnings] == ["inconsistent"]


class TestSummary:
    """User-facing message."""

    def test_all_passed(self):
        validator = ExpenseInputValidator(today=TODAY)
        result = validator.validate(
            date=TODAY, category=ExpenseCategory.RENT,
            amount_primary="10", amount_secondary="26.70",
        )
        assert validator.get_user_friendly_summary(result) == "All checks passed."

    def test_errors_listed(self):
        validator = ExpenseInputValidator(today=TODAY)
        result = validator.validate(date="", category="", amount_primary="", amount_secondary="")
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("Please fix the following:")
        assert "Date is required" in summary
        assert "Category is required" in summary
