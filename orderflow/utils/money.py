"""Single conversion point between stored money values and computation values.

Storage uses ``Numeric(12, 2)`` (``Decimal`` on the Python side). Arithmetic in
the commission calculator runs on floats; everything written back or sent over
the wire is quantized to cents as a ``Decimal``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from orderflow.core.exceptions import ValidationError

MoneyInput = Union[Decimal, int, float, str, None]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_number(value: MoneyInput) -> float:
    """Convert a stored money value to a float; ``None`` counts as zero."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValidationError("Boolean is not a money value.")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(Decimal(value.strip()))
        except InvalidOperation as exc:
            raise ValidationError(f"Invalid money value: {value!r}") from exc
    return float(value)


def to_decimal(value: MoneyInput) -> Decimal:
    """Quantize any money input to cents (half-up), going through ``str`` for floats."""
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValidationError("Boolean is not a money value.")
    try:
        if isinstance(value, float):
            raw = Decimal(repr(value))
        elif isinstance(value, str):
            raw = Decimal(value.strip())
        else:
            raw = Decimal(value)
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid money value: {value!r}") from exc
    if not raw.is_finite():
        raise ValidationError(f"Invalid money value: {value!r}")
    return raw.quantize(CENT, rounding=ROUND_HALF_UP)


def require_positive(value: MoneyInput, field: str = "amount") -> Decimal:
    """Return the quantized amount or raise when it is missing or not > 0."""
    if value is None:
        raise ValidationError(f"{field} is required.", field=field)
    amount = to_decimal(value)
    if amount <= ZERO:
        raise ValidationError(f"{field} must be greater than zero.", field=field)
    return amount


def require_non_negative(value: MoneyInput, field: str = "amount") -> Decimal:
    if value is None:
        raise ValidationError(f"{field} is required.", field=field)
    amount = to_decimal(value)
    if amount < ZERO:
        raise ValidationError(f"{field} must not be negative.", field=field)
    return amount
