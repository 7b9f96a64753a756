"""
Enumerations shared across the commercial pricing engine.

String-valued so they round-trip through CSV/JSON fixtures and API payloads.
"""
from enum import Enum


class _LabelledEnum(str, Enum):
    """Enum with a human-readable label derived from its value."""

    @property
    def label(self) -> str:
        return self.value.replace('_', ' ').title()

    def __str__(self) -> str:
        return self.value


class ItemStatus(_LabelledEnum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    RETIRED = 'retired'


class AllocationStatus(_LabelledEnum):
    DRAFT = 'draft'
    ACTIVE = 'active'
    EXHAUSTED = 'exhausted'
    CLOSED = 'closed'


class PriceBookStatus(_LabelledEnum):
    DRAFT = 'draft'
    ACTIVE = 'active'
    EXPIRED = 'expired'
    ARCHIVED = 'archived'


class PriceSource(_LabelledEnum):
    MANUAL = 'manual'
    POLICY_GENERATED = 'policy_generated'


class OfferStatus(_LabelledEnum):
    DRAFT = 'draft'
    ACTIVE = 'active'
    PAUSED = 'paused'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'


class OfferType(_LabelledEnum):
    STANDARD = 'standard'
    PROMOTION = 'promotion'
    BUNDLE = 'bundle'


class OfferVisibility(_LabelledEnum):
    PUBLIC = 'public'
    RESTRICTED = 'restricted'


class BenefitType(_LabelledEnum):
    NONE = 'none'
    PERCENTAGE_DISCOUNT = 'percentage_discount'
    FIXED_DISCOUNT = 'fixed_discount'
    FIXED_PRICE = 'fixed_price'


class DiscountRuleType(_LabelledEnum):
    PERCENTAGE = 'percentage'
    FIXED_AMOUNT = 'fixed_amount'
    TIERED = 'tiered'
    VOLUME_BASED = 'volume_based'


class DiscountRuleStatus(_LabelledEnum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class BundleStatus(_LabelledEnum):
    DRAFT = 'draft'
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class BundlePricingLogic(_LabelledEnum):
    SUM_COMPONENTS = 'sum_components'
    FIXED_PRICE = 'fixed_price'
    PERCENTAGE_OFF_SUM = 'percentage_off_sum'


class PricingPolicyType(_LabelledEnum):
    COST_PLUS_MARGIN = 'cost_plus_margin'
    REFERENCE_PRICE_BOOK = 'reference_price_book'
    INDEX_BASED = 'index_based'
    FIXED_ADJUSTMENT = 'fixed_adjustment'
    ROUNDING = 'rounding'


class PricingPolicyStatus(_LabelledEnum):
    DRAFT = 'draft'
    ACTIVE = 'active'
    PAUSED = 'paused'
    ARCHIVED = 'archived'


class ExecutionCadence(_LabelledEnum):
    MANUAL = 'manual'
    SCHEDULED = 'scheduled'


class ExecutionType(_LabelledEnum):
    MANUAL = 'manual'
    SCHEDULED = 'scheduled'
    DRY_RUN = 'dry_run'


class ExecutionStatus(_LabelledEnum):
    SUCCESS = 'success'
    PARTIAL = 'partial'
    FAILED = 'failed'


class ScopeType(_LabelledEnum):
    ALL = 'all'
    CATEGORY = 'category'
    PRODUCT = 'product'
    SKU = 'sku'


class AdjustmentType(_LabelledEnum):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class RoundingRule(_LabelledEnum):
    ENDING_99 = '.99'
    ENDING_95 = '.95'
    ENDING_90 = '.90'
    ENDING_00 = '.00'
    NEAREST_5 = 'nearest_5'
    NEAREST_10 = 'nearest_10'

    @property
    def label(self) -> str:
        return self.value


class RoundingDirection(_LabelledEnum):
    UP = 'up'
    DOWN = 'down'
    NEAREST = 'nearest'


class ScheduleFrequency(_LabelledEnum):
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'


class StepStatus(_LabelledEnum):
    SUCCESS = 'success'
    WARNING = 'warning'
    ERROR = 'error'
