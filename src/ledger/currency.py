"""
Currency conversion between the two fixed ledger currencies.

DESIGN DECISION: The two rates are independent constants. With the
default 2.67 / 0.37 pair, 100 -> 267.00 -> 98.79; a round trip does not
return the original amount and nothing here tries to correct that.

Amount editing is one-directional: the handler for the field the user
typed into recomputes the OTHER field and nothing else, so a recomputed
value never feeds back into its source.
"""

from decimal import Decimal, InvalidOperation
from typing import Union

from src.ledger.errors import ValidationError
from src.models.expense import (
    AmountField,
    AmountPair,
    AmountUpdatePolicy,
    ExpenseUpdate,
    quantize_amount,
)


AmountInput = Union[str, int, float, Decimal]


def parse_amount(raw: AmountInput) -> Decimal:
    """
    Parse user input into a non-negative two-place Decimal.

    Raises:
        ValidationError: For empty, non-numeric, non-finite or negative input
    """
    if raw is None or isinstance(raw, bool):
        raise ValidationError("Please enter an amount")
    text = str(raw).strip().replace(",", "")
    if not text:
        raise ValidationError("Please enter an amount")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f"Not a valid amount: {raw!r}")
    if not value.is_finite():
        raise ValidationError(f"Not a valid amount: {raw!r}")
    if value < 0:
        raise ValidationError("Amount cannot be negative")
    return quantize_amount(value)


class CurrencyConverter:
    """Fixed-rate conversion, rounded to two places."""

    def __init__(
        self,
        primary_to_secondary: Decimal = Decimal("2.67"),
        secondary_to_primary: Decimal = Decimal("0.37"),
        primary_currency: str = "PHP",
        secondary_currency: str = "JPY",
    ):
        if primary_to_secondary <= 0 or secondary_to_primary <= 0:
            raise ValueError("Exchange rates must be positive")
        self.primary_to_secondary = Decimal(primary_to_secondary)
        self.secondary_to_primary = Decimal(secondary_to_primary)
        self.primary_currency = primary_currency
        self.secondary_currency = secondary_currency

    @classmethod
    def from_settings(cls, settings) -> "CurrencyConverter":
        """Build from a LedgerSettings instance."""
        return cls(
            primary_to_secondary=settings.primary_to_secondary_rate,
            secondary_to_primary=settings.secondary_to_primary_rate,
            primary_currency=settings.primary_currency,
            secondary_currency=settings.secondary_currency,
        )

    def to_secondary(self, amount: Decimal) -> Decimal:
        return quantize_amount(Decimal(amount) * self.primary_to_secondary)

    def to_primary(self, amount: Decimal) -> Decimal:
        return quantize_amount(Decimal(amount) * self.secondary_to_primary)

    def convert(self, amount: Decimal, source: AmountField) -> Decimal:
        """Convert an amount given in `source` currency into the other one."""
        if source == AmountField.PRIMARY:
            return self.to_secondary(amount)
        return self.to_primary(amount)

    def pair_from(self, amount: Decimal, source: AmountField) -> AmountPair:
        """Amount as entered plus its conversion."""
        entered = quantize_amount(amount)
        counterpart = self.convert(entered, source)
        if source == AmountField.PRIMARY:
            return AmountPair(primary=entered, secondary=counterpart)
        return AmountPair(primary=counterpart, secondary=entered)


class AmountEntry:
    """
    Field-level input handler for the linked amount fields.

    from_primary() is wired to the primary field's change event and
    from_secondary() to the secondary field's. Each returns the full pair
    to display; the caller writes back only the counterpart field.
    """

    def __init__(self, converter: CurrencyConverter):
        self._converter = converter

    def from_primary(self, raw: AmountInput) -> AmountPair:
        return self._converter.pair_from(parse_amount(raw), AmountField.PRIMARY)

    def from_secondary(self, raw: AmountInput) -> AmountPair:
        return self._converter.pair_from(parse_amount(raw), AmountField.SECONDARY)

    def on_edit(self, field: AmountField, raw: AmountInput) -> AmountPair:
        if field == AmountField.PRIMARY:
            return self.from_primary(raw)
        return self.from_secondary(raw)


def apply_update_policy(
    changes: ExpenseUpdate,
    converter: CurrencyConverter,
    policy: AmountUpdatePolicy,
) -> ExpenseUpdate:
    """
    Resolve an update that carries only one of the two amounts.

    Under ALLOW_DRIFT the update is returned unchanged. Under
    RECOMPUTE_COUNTERPART the missing amount is derived from the given one.
    Updates carrying both amounts, or neither, are never altered.
    """
    if policy == AmountUpdatePolicy.ALLOW_DRIFT:
        return changes

    fields = changes.model_fields_set
    has_primary = "amount_primary" in fields and changes.amount_primary is not None
    has_secondary = "amount_secondary" in fields and changes.amount_secondary is not None
    if has_primary == has_secondary:
        return changes

    data = changes.changes()
    if has_primary:
        data["amount_secondary"] = converter.to_secondary(changes.amount_primary)
    else:
        data["amount_primary"] = converter.to_primary(changes.amount_secondary)
    return ExpenseUpdate(**data)
