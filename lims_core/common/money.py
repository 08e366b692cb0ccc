# lims_core/common/money.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from lims_core.common.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value, field: str = "amount") -> Decimal:
    """
    Parses ints, strings and Decimals (floats go through str()) into a finite Decimal.
    """
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            d = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError("InvalidNumber", f"{field} is not a number.", details={"field": field})

    if not d.is_finite():
        raise ValidationError("InvalidNumber", f"{field} must be a finite number.", details={"field": field})
    return d


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def has_at_most_two_places(value: Decimal) -> bool:
    return value == value.quantize(CENT)
