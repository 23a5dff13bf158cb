"""Money validation and conversion utilities.

Amounts travel through the API as decimals and are stored as integer cents.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from debt_ledger.core.errors import ValidationError

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number, field: str = "amount") -> Decimal:
    """Parse a number into a Decimal; floats go through str() to avoid binary noise."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    return amount


def to_cents(value: Number, field: str = "amount") -> int:
    """
    Convert a decimal amount to integer cents.

    Rules:
    - at most two fractional digits
    - no rounding: 10.005 is rejected, not rounded
    """
    amount = to_decimal(value, field)
    if amount != amount.quantize(CENT):
        raise ValidationError(
            f"{field} has more than two decimal places: {amount}",
            field=field
        )
    return int(amount.quantize(CENT) * 100)


def positive_cents(value: Optional[Number], field: str = "amount") -> int:
    """Validate a strictly positive amount and return it in cents."""
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    cents = to_cents(value, field)
    if cents <= 0:
        raise ValidationError(f"{field} must be greater than 0", field=field, value=str(value))
    return cents


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)


def average_rounded(values: Iterable[Number]) -> Decimal:
    """Mean of the values rounded half-up to two decimal places; 0 for no values."""
    amounts = [to_decimal(v, "price") for v in values]
    if not amounts:
        return Decimal("0.00")
    total = sum(amounts, Decimal("0"))
    return (total / len(amounts)).quantize(CENT, rounding=ROUND_HALF_UP)


def require_text(value: Optional[str], field: str) -> str:
    """Validate a required, non-blank string field."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()
