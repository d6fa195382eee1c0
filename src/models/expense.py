"""
Core Data Models for Together Budget

These models define the strict schemas for expense data flowing between
the Record Store and the ledger engine. Untyped rows and documents read
from a store are coerced into ExpenseRecord at the storage boundary;
nothing past that boundary handles raw dicts.

DESIGN DECISION: Every record carries the amount in BOTH currencies.
The two amounts are set together at entry time and are stored
independently afterwards. Nothing here re-validates them against the
exchange rates on read.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


TWO_PLACES = Decimal("0.01")

# Alias for annotations inside models that also have a field named "date".
DateType = date


def quantize_amount(value: Decimal) -> Decimal:
    """Round a monetary amount to two decimal places (half up)."""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Closed set of expense categories.

    The values are the exact labels shown to users and written to storage.
    """
    FOOD = "Food"
    TRANSPORT = "Transport"
    EQUIPMENT = "Equipment"
    TRAVEL = "Travel"
    ENTERTAINMENT = "Entertainment"
    CLOTHING = "Clothing"
    RENT = "Rent"
    MEDICAL = "Medical"
    BEAUTY = "Beauty"
    SELF_DEVELOPMENT = "Self-Development"
    INVESTMENT = "Investment"
    ELECTRIC_BILL = "Electric Bill"
    WATER_BILL = "Water Bill"
    INTERNET_AND_PHONE = "Internet & Phone"
    OTHER = "Other"


class AmountField(str, Enum):
    """Which of the two amount fields a user edited."""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class AmountUpdatePolicy(str, Enum):
    """
    What happens when an update carries only one of the two amounts.

    ALLOW_DRIFT leaves the other amount untouched, so the pair may no longer
    match the exchange rates. RECOMPUTE_COUNTERPART derives the missing
    amount through the currency converter.
    """
    ALLOW_DRIFT = "allow_drift"
    RECOMPUTE_COUNTERPART = "recompute_counterpart"


# =============================================================================
# AMOUNTS
# =============================================================================

class AmountPair(BaseModel):
    """The same economic value expressed in both currencies."""

    model_config = ConfigDict(frozen=True)

    primary: Decimal = Field(..., ge=0)
    secondary: Decimal = Field(..., ge=0)


# =============================================================================
# EXPENSE RECORDS
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    Fields a user supplies when creating an expense.

    The store assigns id, created_at and updated_at; the ledger view
    stamps owner_id from the session.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: DateType
    category: ExpenseCategory
    description: Optional[str] = Field(default=None, max_length=500)
    amount_primary: Decimal = Field(..., ge=0)
    amount_secondary: Decimal = Field(..., ge=0)

    @field_validator("amount_primary", "amount_secondary")
    @classmethod
    def round_amounts(cls, v: Decimal) -> Decimal:
        return quantize_amount(v)

    @field_validator("description")
    @classmethod
    def empty_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class ExpenseUpdate(BaseModel):
    """
    Partial update of an existing expense.

    Only user-editable fields appear here; owner_id and created_at can
    never be changed through an update.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    date: Optional[DateType] = None
    category: Optional[ExpenseCategory] = None
    description: Optional[str] = Field(default=None, max_length=500)
    amount_primary: Optional[Decimal] = Field(default=None, ge=0)
    amount_secondary: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("amount_primary", "amount_secondary")
    @classmethod
    def round_amounts(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return quantize_amount(v) if v is not None else None

    @field_validator("description")
    @classmethod
    def empty_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def required_fields_not_cleared(self) -> "ExpenseUpdate":
        """Only description may be explicitly cleared."""
        cleared = [
            name for name in ("date", "category", "amount_primary", "amount_secondary")
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"Fields cannot be cleared: {', '.join(cleared)}")
        return self

    def changes(self) -> dict[str, Any]:
        """Only the fields that were explicitly set."""
        return self.model_dump(exclude_unset=True)

    @property
    def is_empty(self) -> bool:
        return not self.model_fields_set


class ExpenseRecord(BaseModel):
    """
    A single stored expense entry.

    id and owner_id are immutable once assigned; created_at orders the
    ledger (newest first).
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    date: DateType
    category: ExpenseCategory
    description: Optional[str] = None
    amount_primary: Decimal = Field(..., ge=0)
    amount_secondary: Decimal = Field(..., ge=0)
    created_at: datetime
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_timestamps(self) -> "ExpenseRecord":
        if self.updated_at and self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")
        return self

    @classmethod
    def from_draft(
        cls,
        draft: ExpenseDraft,
        record_id: str,
        owner_id: str,
        created_at: datetime,
    ) -> "ExpenseRecord":
        return cls(
            id=record_id,
            owner_id=owner_id,
            created_at=created_at,
            updated_at=created_at,
            **draft.model_dump(),
        )

    def with_changes(self, changes: dict[str, Any], updated_at: datetime) -> "ExpenseRecord":
        """Return a copy with user-editable fields replaced."""
        forbidden = {"id", "owner_id", "created_at", "updated_at"} & changes.keys()
        if forbidden:
            raise ValueError(f"Fields cannot be updated: {sorted(forbidden)}")
        data = self.model_dump()
        data.update(changes)
        data["updated_at"] = updated_at
        return ExpenseRecord(**data)

    @property
    def amounts(self) -> AmountPair:
        return AmountPair(primary=self.amount_primary, secondary=self.amount_secondary)

    def to_store_dict(self) -> dict[str, Any]:
        """Flat, string-friendly representation for row-based stores."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "date": self.date.isoformat(),
            "category": self.category.value,
            "description": self.description or "",
            "amount_primary": str(self.amount_primary),
            "amount_secondary": str(self.amount_secondary),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else "",
        }

    @classmethod
    def from_store_dict(cls, raw: dict[str, Any]) -> "ExpenseRecord":
        """
        Coerce an untyped store document into a record.

        Raises ValueError (pydantic.ValidationError) if required fields are
        missing or malformed.
        """
        data = {k: (v if v != "" else None) for k, v in raw.items()}
        return cls(**data)
