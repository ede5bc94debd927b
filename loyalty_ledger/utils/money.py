"""
Decimal helpers shared by accrual and redemption math.

Points and currency are both carried at 2 decimal places and rounded half
away from zero, so validation-time and apply-time figures never drift.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from .exceptions import ValidationError

D = Decimal

ZERO = D("0.00")
CENT = D("0.01")


def q2(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Coerce stored numerics (Decimal, int, float, str) to Decimal."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    return D(str(value))


def parse_amount(value: Any, field: str, allow_negative: bool = False) -> Decimal:
    """
    Parse caller input into a finite Decimal.

    Raises:
        ValidationError: if the value is missing, not numeric, not finite
            or negative (unless allowed)
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field)
    try:
        amount = value if isinstance(value, Decimal) else D(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", field)
    if not allow_negative and amount < 0:
        raise ValidationError(f"{field} must not be negative", field)
    return amount


def require_id(value: Any, field: str) -> str:
    """Identifiers arrive as non-empty strings (or ints from older callers)."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} is required", field)
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field} is required", field)
    return text


def as_float(value: Optional[Decimal]) -> Optional[float]:
    """Serialize a Decimal for response envelopes."""
    if value is None:
        return None
    return float(q2(to_decimal(value)))
