"""
Ledger view-layer models: filters, aggregation windows, summaries and
operation outcomes.

None of these are persisted. They describe what the user is looking at
and what an operation produced.
"""

import calendar
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.expense import ExpenseCategory, ExpenseDraft, ExpenseRecord


ONE_PLACE = Decimal("0.1")


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


# =============================================================================
# FILTERING
# =============================================================================

class LedgerFilter(BaseModel):
    """
    Date-range and category predicate over the ledger view.

    Both bounds are inclusive. An empty category set matches every
    category; there is no "exclude all" state.
    """
    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    categories: frozenset[ExpenseCategory] = Field(default_factory=frozenset)

    @model_validator(mode="after")
    def validate_range(self) -> "LedgerFilter":
        if self.end < self.start:
            raise ValueError("Filter end date cannot be before start date")
        return self

    @classmethod
    def for_month(cls, year: int, month: int, categories=()) -> "LedgerFilter":
        start, end = month_bounds(year, month)
        return cls(start=start, end=end, categories=frozenset(categories))

    @classmethod
    def current_month(cls, today: Optional[date] = None) -> "LedgerFilter":
        today = today or date.today()
        return cls.for_month(today.year, today.month)

    def matches(self, record: ExpenseRecord) -> bool:
        if self.categories and record.category not in self.categories:
            return False
        return self.start <= record.date <= self.end


# =============================================================================
# AGGREGATION
# =============================================================================

class AggregationWindow(BaseModel):
    """A (month, year) pair. Independent of the filter's date range."""

    model_config = ConfigDict(frozen=True)

    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1, le=9999)

    @classmethod
    def current(cls, today: Optional[date] = None) -> "AggregationWindow":
        today = today or date.today()
        return cls(month=today.month, year=today.year)

    @property
    def first_day(self) -> date:
        return month_bounds(self.year, self.month)[0]

    @property
    def last_day(self) -> date:
        return month_bounds(self.year, self.month)[1]

    def contains(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day

    @property
    def label(self) -> str:
        return self.first_day.strftime("%B %Y")


class CategoryTotal(BaseModel):
    """Per-category sums, one per currency."""

    total_primary: Decimal = Decimal("0")
    total_secondary: Decimal = Decimal("0")
    record_count: int = 0


class MonthlySummary(BaseModel):
    """
    Result of aggregating one month of records by category.

    Category order is the order of first occurrence in the input.
    """

    window: AggregationWindow
    categories: dict[ExpenseCategory, CategoryTotal] = Field(default_factory=dict)
    total_primary: Decimal = Decimal("0")
    total_secondary: Decimal = Decimal("0")
    record_count: int = 0

    @property
    def has_data(self) -> bool:
        return self.record_count > 0

    def percentage_of(self, category: ExpenseCategory) -> Optional[Decimal]:
        """
        Share of the primary-currency total, rounded to one place.

        Returns None when there is no data for the window; a category absent
        from a non-empty month has a share of zero.
        """
        if not self.has_data or self.total_primary == 0:
            return None
        group = self.categories.get(category)
        if group is None:
            return Decimal("0.0")
        share = Decimal(100) * group.total_primary / self.total_primary
        return share.quantize(ONE_PLACE, rounding=ROUND_HALF_UP)

    def percentages(self) -> dict[ExpenseCategory, Decimal]:
        """Shares for every category present; empty when there is no data."""
        if not self.has_data or self.total_primary == 0:
            return {}
        return {cat: self.percentage_of(cat) for cat in self.categories}

    def sorted_categories(self) -> list[tuple[ExpenseCategory, CategoryTotal]]:
        """Categories by primary total, largest first, for display."""
        return sorted(
            self.categories.items(),
            key=lambda item: item[1].total_primary,
            reverse=True,
        )


# =============================================================================
# OUTCOMES
# =============================================================================

class ConnectionOutcome(str, Enum):
    """Non-error results of connection directory operations."""
    ADDED = "added"
    ALREADY_CONNECTED = "already_connected"
    REMOVED = "removed"
    NOT_CONNECTED = "not_connected"


class OperationStatus(str, Enum):
    """Distinguishable outcome of a user-facing operation."""
    SUCCESS = "success"
    CONFLICT = "conflict"  # benign no-op, e.g. already connected
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    STORE_ERROR = "store_error"


class OperationResult(BaseModel):
    """What a flow reports back to the presentation layer."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: OperationStatus
    message: str
    data: Optional[Any] = None

    @property
    def ok(self) -> bool:
        """True for success and benign no-op outcomes."""
        return self.status in (OperationStatus.SUCCESS, OperationStatus.CONFLICT)

    @classmethod
    def success(cls, message: str, data: Any = None) -> "OperationResult":
        return cls(status=OperationStatus.SUCCESS, message=message, data=data)


class ExportFile(BaseModel):
    """Tab-separated export of the visible records."""

    filename: str
    content: str
    row_count: int = Field(ge=0)
    media_type: str = "text/csv"


# =============================================================================
# ENTRY VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in expense form input."""

    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'future_date')"
    )
    message: str = Field(..., description="Human-readable description of the issue")
    severity: str = Field(..., pattern="^(error|warning)$")
    suggested_fix: Optional[str] = None


class EntryValidationResult(BaseModel):
    """
    Outcome of validating an expense form.

    draft is set only when there are no errors; warnings never block saving.
    """

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    draft: Optional[ExpenseDraft] = None

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]
