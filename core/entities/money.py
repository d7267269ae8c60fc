"""Decimal helpers shared by entities and repositories.

Amounts are kept as ``Decimal`` with two places in the domain and stored as
integer minor units (cents) in the database. Anything above ``MAX_AMOUNT`` or
``MAX_RATE`` is rejected at parse time, so cents always fit a sqlite INTEGER
and rate * amount products still quantize within the default context.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from core.errors import ValidationError

CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("1000000000000")
MAX_RATE = Decimal("1000000")

def quantize_amount(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)

def to_cents(value: Decimal) -> int:
    return int(quantize_amount(value) * 100)

def from_cents(cents: int) -> Decimal:
    return quantize_amount(Decimal(int(cents)) / 100)

def _parse_decimal(value: Any, field: str) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, float):
        value = repr(value)
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a decimal number", field=field)
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a decimal number", field=field)
    return parsed

def _quantize_field(value: Decimal, field: str) -> Decimal:
    try:
        return quantize_amount(value)
    except InvalidOperation:
        raise ValidationError(f"{field} is out of range", field=field)

def _check_ceiling(value: Decimal, field: str, ceiling: Decimal = MAX_AMOUNT) -> None:
    if value > ceiling:
        raise ValidationError(f"{field} must not exceed {ceiling}", field=field)

def parse_amount(value: Any, field: str) -> Decimal:
    """Parse a strictly positive money amount, rounded to cents."""
    parsed = _parse_decimal(value, field)
    if parsed <= 0:
        raise ValidationError(f"{field} must be positive", field=field)
    _check_ceiling(parsed, field)
    amount = _quantize_field(parsed, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be at least 0.01", field=field)
    return amount

def parse_rate(value: Any, field: str = "rate") -> Decimal:
    parsed = _parse_decimal(value, field)
    if parsed <= 0:
        raise ValidationError(f"{field} must be positive", field=field)
    _check_ceiling(parsed, field, MAX_RATE)
    return parsed

def parse_commission_rate(value: Any, field: str = "commission_rate") -> Decimal:
    parsed = _parse_decimal(value, field)
    if parsed < 0 or parsed >= 1:
        raise ValidationError(f"{field} must be a fraction between 0 and 1", field=field)
    return parsed

def parse_non_negative_amount(value: Any, field: str) -> Decimal:
    parsed = _parse_decimal(value, field)
    if parsed < 0:
        raise ValidationError(f"{field} must not be negative", field=field)
    _check_ceiling(parsed, field)
    return _quantize_field(parsed, field)
