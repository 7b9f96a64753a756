"""
Price rounding - psychological endings (.99/.95/.90/.00) and multiples (5/10).

Ending rules work relative to ``floor(price) + ending``:
- up: the target if the price is at or below it, else the next one up
- down: the target if the price is at or above it, else the one below
- nearest: whichever neighbouring target is closer, ties go down
"""
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional

from .enums import RoundingDirection, RoundingRule
from .logic import RoundingSpec
from .money import to_decimal

ONE = Decimal('1')

ENDINGS = {
    RoundingRule.ENDING_99: Decimal('0.99'),
    RoundingRule.ENDING_95: Decimal('0.95'),
    RoundingRule.ENDING_90: Decimal('0.90'),
    RoundingRule.ENDING_00: Decimal('0.00'),
}

MULTIPLES = {
    RoundingRule.NEAREST_5: Decimal('5'),
    RoundingRule.NEAREST_10: Decimal('10'),
}


def round_to_ending(price: Decimal, ending: Decimal, direction: RoundingDirection) -> Decimal:
    price = to_decimal(price)
    base = price.to_integral_value(rounding=ROUND_FLOOR)
    target = base + ending

    if direction == RoundingDirection.UP:
        return target if price <= target else target + ONE

    if direction == RoundingDirection.DOWN:
        if price >= target:
            return target
        return base - ONE + ending if base > 0 else ending

    lower = target if target <= price else target - ONE
    upper = target if target >= price else target + ONE
    if abs(price - lower) <= abs(price - upper):
        return lower
    return upper


def round_to_multiple(price: Decimal, multiple: Decimal, direction: RoundingDirection) -> Decimal:
    price = to_decimal(price)
    mode = {
        RoundingDirection.UP: ROUND_CEILING,
        RoundingDirection.DOWN: ROUND_FLOOR,
    }.get(direction, ROUND_HALF_UP)
    return (price / multiple).to_integral_value(rounding=mode) * multiple


def apply_rounding(price: Decimal, spec: Optional[RoundingSpec]) -> Decimal:
    """Apply a rounding spec to ``price``; ``None`` leaves it unchanged."""
    if spec is None:
        return to_decimal(price)
    if spec.rule in ENDINGS:
        return round_to_ending(price, ENDINGS[spec.rule], spec.direction)
    if spec.rule in MULTIPLES:
        return round_to_multiple(price, MULTIPLES[spec.rule], spec.direction)
    return to_decimal(price)
