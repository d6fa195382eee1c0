"""
Two-Stage Validation of Expense Form Input

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (date, category, both amounts)
- Format validation (ISO date, known category label, numeric amounts)
- Errors here block saving

STAGE 2 - SEMANTIC VALIDATION:
- Future and very old dates
- Zero amounts
- Amount pairs that no longer match either exchange rate
- Only warnings; the user may still save

Stage 2 runs only when stage 1 produced a complete draft.

IMPORTANT: Validation NEVER silently fixes input. Amounts are rounded to
two places (the stored precision) and nothing else is changed.
"""

from datetime import date, timedelta
from typing import Any, Optional, Union

import structlog

from src.ledger.currency import CurrencyConverter, parse_amount
from src.ledger.errors import ValidationError
from src.models.expense import ExpenseCategory, ExpenseDraft
from src.models.ledger import EntryValidationResult, ValidationIssue


logger = structlog.get_logger(__name__)

OLD_DATE_DAYS = 365 * 2


class ExpenseInputValidator:
    """Turns raw form values into an ExpenseDraft, collecting issues."""

    def __init__(
        self,
        converter: Optional[CurrencyConverter] = None,
        today: Optional[date] = None,
    ):
        """
        Args:
            converter: Used to check that the two amounts still agree.
            today: Fixed "today" for date checks; defaults to date.today().
        """
        self._converter = converter or CurrencyConverter()
        self._today = today

    def _parse_date(self, value: Any) -> Union[date, ValidationIssue]:
        if isinstance(value, date):
            return value
        text = str(value or "").strip()
        if not text:
            return ValidationIssue(
                field="date",
                issue_type="missing",
                message="Date is required",
                severity="error",
            )
        try:
            return date.fromisoformat(text)
        except ValueError:
            return ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Not a valid date: {text}",
                severity="error",
                suggested_fix="Use the YYYY-MM-DD format",
            )

    def _parse_category(self, value: Any) -> Union[ExpenseCategory, ValidationIssue]:
        if isinstance(value, ExpenseCategory):
            return value
        text = str(value or "").strip()
        if not text:
            return ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            )
        try:
            return ExpenseCategory(text)
        except ValueError:
            return ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"Unknown category: {text}",
                severity="error",
                suggested_fix="Pick one of the listed categories",
            )

    def _validate_schema(
        self,
        values: dict[str, Any],
    ) -> tuple[Optional[ExpenseDraft], list[ValidationIssue]]:
        """Stage 1: returns (draft or None, issues)."""
        issues = []
        parsed = {}

        for name, parser in (("date", self._parse_date), ("category", self._parse_category)):
            result = parser(values.get(name))
            if isinstance(result, ValidationIssue):
                issues.append(result)
            else:
                parsed[name] = result

        for name in ("amount_primary", "amount_secondary"):
            try:
                parsed[name] = parse_amount(values.get(name))
            except ValidationError as e:
                issues.append(ValidationIssue(
                    field=name,
                    issue_type="invalid_value",
                    message=str(e),
                    severity="error",
                ))

        description = values.get("description")
        if description is not None and len(str(description).strip()) > 500:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_long",
                message="Description is longer than 500 characters",
                severity="error",
            ))
        else:
            parsed["description"] = description

        if issues:
            return None, issues
        return ExpenseDraft(**parsed), issues

    def _validate_semantic(self, draft: ExpenseDraft) -> list[ValidationIssue]:
        """Stage 2: warnings only."""
        issues = []
        today = self._today or date.today()

        if draft.date > today:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({draft.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))
        elif draft.date < today - timedelta(days=OLD_DATE_DAYS):
            issues.append(ValidationIssue(
                field="date",
                issue_type="suspicious_date",
                message=f"Date ({draft.date}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if draft.amount_primary == 0 and draft.amount_secondary == 0:
            issues.append(ValidationIssue(
                field="amount_primary",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
            ))
        elif (
            self._converter.to_secondary(draft.amount_primary) != draft.amount_secondary
            and self._converter.to_primary(draft.amount_secondary) != draft.amount_primary
        ):
            issues.append(ValidationIssue(
                field="amount_secondary",
                issue_type="inconsistent",
                message=(
                    f"{self._converter.primary_currency} and "
                    f"{self._converter.secondary_currency} amounts do not match "
                    "the exchange rate"
                ),
                severity="warning",
                suggested_fix="Re-enter one of the amounts to recompute the other",
            ))

        return issues

    def validate(self, **values: Any) -> EntryValidationResult:
        """
        Run both stages over raw form values.

        Accepts date, category, description, amount_primary and
        amount_secondary as keyword arguments.
        """
        draft, issues = self._validate_schema(values)
        if draft is None:
            logger.debug(
                "entry_rejected",
                fields=sorted({i.field for i in issues}),
            )
            return EntryValidationResult(is_valid=False, issues=issues)

        issues.extend(self._validate_semantic(draft))
        return EntryValidationResult(is_valid=True, issues=issues, draft=draft)

    def get_user_friendly_summary(self, result: EntryValidationResult) -> str:
        """Short message shown beneath the entry form."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        if result.errors:
            lines.append("Please fix the following:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify:")
            for issue in result.warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
