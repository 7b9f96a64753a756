"""
Money and time helpers.

Money is fixed-point Decimal with a 2-digit scale; instants are UTC-aware.
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

CENT = Decimal('0.01')


def to_decimal(value) -> Decimal:
    """Coerce a number or numeric string to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value).strip())


def to_money(value) -> Decimal:
    """Quantize to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def optional_money(value) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    return to_money(value)


def format_money(amount, currency: str = 'EUR') -> str:
    if amount is None:
        return '-'
    return f"{currency} {to_money(amount):,.2f}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize an instant to UTC; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
