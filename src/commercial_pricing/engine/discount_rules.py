"""
Discount Rule Evaluator - turns a rule definition plus price/quantity into a discount.

Pure functions, no state. Tiered rules pick the first tier (in declaration
order) whose range contains the price; volume rules pick the threshold with
the greatest ``min_qty`` reached.
"""
from decimal import Decimal
from functools import singledispatch

from .logic import (
    DiscountRuleLogic,
    FixedAmountRule,
    PercentageRule,
    PriceTier,
    TieredRule,
    VolumeBasedRule,
)
from .money import to_decimal, to_money

ZERO = Decimal('0')


@singledispatch
def discount(logic, base_price: Decimal, quantity: int = 1) -> Decimal:
    """
    Calculate the discount amount a rule grants on ``base_price``.

    Args:
        logic: One of the DiscountRuleLogic variants
        base_price: Unit base price
        quantity: Ordered quantity (only volume rules look at it)

    Returns:
        Discount amount (unrounded, never negative)
    """
    raise TypeError(f"Unsupported discount rule logic: {type(logic).__name__}")


@discount.register
def _(logic: PercentageRule, base_price: Decimal, quantity: int = 1) -> Decimal:
    return max(ZERO, to_decimal(base_price) * logic.value / 100)


@discount.register
def _(logic: FixedAmountRule, base_price: Decimal, quantity: int = 1) -> Decimal:
    # Callers floor the resulting price at zero
    return max(ZERO, logic.value)


@discount.register
def _(logic: TieredRule, base_price: Decimal, quantity: int = 1) -> Decimal:
    price = to_decimal(base_price)
    tier = matching_tier(logic, price)
    if tier is None:
        return ZERO
    return max(ZERO, price * tier.value / 100)


@discount.register
def _(logic: VolumeBasedRule, base_price: Decimal, quantity: int = 1) -> Decimal:
    threshold = matching_threshold(logic, quantity)
    if threshold is None:
        return ZERO
    return max(ZERO, threshold.value)


def matching_tier(logic: TieredRule, price: Decimal):
    """First tier whose [min, max] contains the price, or None."""
    for tier in logic.tiers:
        if tier.contains(price):
            return tier
    return None


def matching_threshold(logic: VolumeBasedRule, quantity: int):
    """Threshold with the greatest min_qty not above ``quantity``, or None."""
    applicable = None
    for threshold in logic.thresholds:
        if quantity >= threshold.min_qty:
            if applicable is None or threshold.min_qty > applicable.min_qty:
                applicable = threshold
    return applicable


def final_price(logic: DiscountRuleLogic, base_price: Decimal, quantity: int = 1) -> Decimal:
    """Base price minus the rule's discount, floored at zero."""
    price = to_decimal(base_price)
    return max(ZERO, price - discount(logic, price, quantity))


def describe(logic: DiscountRuleLogic, currency: str = 'EUR') -> str:
    """One-line summary of a rule for display."""
    if isinstance(logic, PercentageRule):
        return f"{logic.value:.0f}% off"
    if isinstance(logic, FixedAmountRule):
        return f"{currency} {to_money(logic.value):,.2f} off"
    if isinstance(logic, TieredRule):
        if not logic.tiers:
            return "Tiered discount (no tiers configured)"
        return f"{len(logic.tiers)} tier(s) configured"
    if isinstance(logic, VolumeBasedRule):
        if not logic.thresholds:
            return "Volume-based discount (no thresholds configured)"
        first = logic.thresholds[0]
        return f"{currency} {to_money(first.value):,.2f} off when qty >= {first.min_qty}"
    raise TypeError(f"Unsupported discount rule logic: {type(logic).__name__}")


def describe_tier(tier: PriceTier, currency: str = 'EUR') -> str:
    upper = f"{currency} {to_money(tier.max_price):,.2f}" if tier.max_price is not None else "∞"
    return f"{currency} {to_money(tier.min_price):,.2f} - {upper} → {tier.value:.0f}%"
