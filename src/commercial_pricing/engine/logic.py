"""
Typed logic definitions for discount rules and pricing policies.

Each rule/policy type gets its own frozen dataclass carrying only the
parameters it needs. The unions below are what rules and policies store;
the variant class determines the type.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar, Optional, Union

from .enums import (
    AdjustmentType,
    DiscountRuleType,
    PricingPolicyType,
    RoundingDirection,
    RoundingRule,
    ScheduleFrequency,
)


# ---------------------------------------------------------------------------
# Discount rule variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PercentageRule:
    """Percentage of the base price."""
    rule_type: ClassVar[DiscountRuleType] = DiscountRuleType.PERCENTAGE
    value: Decimal


@dataclass(frozen=True)
class FixedAmountRule:
    """Flat amount off the base price."""
    rule_type: ClassVar[DiscountRuleType] = DiscountRuleType.FIXED_AMOUNT
    value: Decimal


@dataclass(frozen=True)
class PriceTier:
    """Price band; ``max_price`` of None means unbounded."""
    value: Decimal
    min_price: Decimal = Decimal('0')
    max_price: Optional[Decimal] = None

    def contains(self, price: Decimal) -> bool:
        if price < self.min_price:
            return False
        return self.max_price is None or price <= self.max_price


@dataclass(frozen=True)
class TieredRule:
    """Percentage discount chosen by the first tier containing the base price."""
    rule_type: ClassVar[DiscountRuleType] = DiscountRuleType.TIERED
    tiers: tuple[PriceTier, ...] = ()


@dataclass(frozen=True)
class VolumeThreshold:
    min_qty: int
    value: Decimal


@dataclass(frozen=True)
class VolumeBasedRule:
    """Flat discount chosen by the highest quantity threshold reached."""
    rule_type: ClassVar[DiscountRuleType] = DiscountRuleType.VOLUME_BASED
    thresholds: tuple[VolumeThreshold, ...] = ()


DiscountRuleLogic = Union[PercentageRule, FixedAmountRule, TieredRule, VolumeBasedRule]


# ---------------------------------------------------------------------------
# Pricing policy variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RoundingSpec:
    rule: RoundingRule
    direction: RoundingDirection = RoundingDirection.NEAREST


@dataclass(frozen=True)
class Adjustment:
    """Percentage (``x (1 + v/100)``) or flat (``+ v``) change to a price."""
    value: Decimal = Decimal('0')
    adjustment_type: AdjustmentType = AdjustmentType.PERCENTAGE

    def apply(self, price: Decimal) -> Decimal:
        if self.adjustment_type == AdjustmentType.PERCENTAGE:
            return price * (1 + self.value / 100)
        return price + self.value


@dataclass(frozen=True)
class CostPlusMarginLogic:
    policy_type: ClassVar[PricingPolicyType] = PricingPolicyType.COST_PLUS_MARGIN
    margin_percentage: Decimal = Decimal('0')
    markup_value: Decimal = Decimal('0')
    cost_source: str = 'product_catalog'
    rounding: Optional[RoundingSpec] = None


@dataclass(frozen=True)
class ReferencePriceBookLogic:
    policy_type: ClassVar[PricingPolicyType] = PricingPolicyType.REFERENCE_PRICE_BOOK
    source_price_book_id: str = ''
    adjustment: Adjustment = field(default_factory=Adjustment)
    rounding: Optional[RoundingSpec] = None


@dataclass(frozen=True)
class IndexBasedLogic:
    policy_type: ClassVar[PricingPolicyType] = PricingPolicyType.INDEX_BASED
    multiplier: Decimal = Decimal('1')
    fixed_adjustment: Decimal = Decimal('0')
    market: Optional[str] = None
    rounding: Optional[RoundingSpec] = None


@dataclass(frozen=True)
class FixedAdjustmentLogic:
    policy_type: ClassVar[PricingPolicyType] = PricingPolicyType.FIXED_ADJUSTMENT
    adjustment: Adjustment = field(default_factory=Adjustment)
    rounding: Optional[RoundingSpec] = None


@dataclass(frozen=True)
class RoundingLogic:
    policy_type: ClassVar[PricingPolicyType] = PricingPolicyType.ROUNDING
    rounding: RoundingSpec = field(default_factory=lambda: RoundingSpec(RoundingRule.ENDING_99))


PolicyLogic = Union[
    CostPlusMarginLogic,
    ReferencePriceBookLogic,
    IndexBasedLogic,
    FixedAdjustmentLogic,
    RoundingLogic,
]


@dataclass(frozen=True)
class ScheduleSpec:
    """When a scheduled policy should run (``time`` is HH:MM, UTC)."""
    frequency: ScheduleFrequency = ScheduleFrequency.DAILY
    time: str = '00:00'
    day_of_week: Optional[int] = None   # 0 = Monday
    day_of_month: Optional[int] = None

    def hour_minute(self) -> tuple[int, int]:
        hour, minute = self.time.split(':')
        return int(hour), int(minute)
