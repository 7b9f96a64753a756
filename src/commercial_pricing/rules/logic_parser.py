"""
Logic Parser - Validates and parses rule/policy logic definitions.

Logic definitions arrive as plain dicts (fixture JSON, API payloads) and are
turned into the typed variants in ``engine.logic``. The ``parse_*``
functions return ``(logic, errors)`` with ``logic`` None when validation
failed; the ``require_*`` wrappers raise ``LogicDefinitionError`` instead.
"""
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..engine.enums import (
    AdjustmentType,
    DiscountRuleType,
    PricingPolicyType,
    RoundingDirection,
    RoundingRule,
    ScheduleFrequency,
)
from ..engine.logic import (
    Adjustment,
    CostPlusMarginLogic,
    DiscountRuleLogic,
    FixedAdjustmentLogic,
    FixedAmountRule,
    IndexBasedLogic,
    PercentageRule,
    PolicyLogic,
    PriceTier,
    ReferencePriceBookLogic,
    RoundingLogic,
    RoundingSpec,
    ScheduleSpec,
    TieredRule,
    VolumeBasedRule,
    VolumeThreshold,
)
from ..exceptions import LogicDefinitionError


def parse_optional_str(value) -> Optional[str]:
    """Parse optional string (empty = None)."""
    if value is None or str(value).strip() == '':
        return None
    return str(value).strip()


def parse_decimal(value, name: str, errors: list[str], default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Parse a number into Decimal, recording an error when it is not numeric."""
    if value is None or (isinstance(value, str) and value.strip() == ''):
        return default
    try:
        number = Decimal(repr(value)) if isinstance(value, float) else Decimal(str(value).strip())
    except InvalidOperation:
        errors.append(f"{name} must be numeric, got '{value}'")
        return default
    if not number.is_finite():
        errors.append(f"{name} must be a finite number, got '{value}'")
        return default
    return number


def parse_enum(enum_cls, value, name: str, errors: list[str], default=None):
    if value is None or value == '':
        return default
    try:
        return enum_cls(value)
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls)
        errors.append(f"invalid {name} '{value}', must be one of: {valid}")
        return default


# ---------------------------------------------------------------------------
# Discount rules
# ---------------------------------------------------------------------------

def _parse_percentage(data: dict, errors: list[str]) -> Optional[PercentageRule]:
    value = parse_decimal(data.get('value'), 'value', errors)
    if value is None:
        errors.append("value is required for a percentage rule")
        return None
    if not 0 <= value <= 100:
        errors.append("percentage value must be between 0 and 100")
        return None
    return PercentageRule(value=value)


def _parse_fixed_amount(data: dict, errors: list[str]) -> Optional[FixedAmountRule]:
    value = parse_decimal(data.get('value'), 'value', errors)
    if value is None:
        errors.append("value is required for a fixed amount rule")
        return None
    if value < 0:
        errors.append("fixed amount cannot be negative")
        return None
    return FixedAmountRule(value=value)


def _parse_tiered(data: dict, errors: list[str]) -> Optional[TieredRule]:
    tiers = []
    for i, raw in enumerate(data.get('tiers') or [], start=1):
        value = parse_decimal(raw.get('value'), f"tier {i} value", errors)
        min_price = parse_decimal(raw.get('min'), f"tier {i} min", errors, Decimal('0'))
        max_price = parse_decimal(raw.get('max'), f"tier {i} max", errors)
        if value is None:
            errors.append(f"tier {i}: value is required")
            continue
        if max_price is not None and min_price is not None and max_price < min_price:
            errors.append(f"tier {i}: max must not be below min")
            continue
        tiers.append(PriceTier(value=value, min_price=min_price, max_price=max_price))
    if errors:
        return None
    return TieredRule(tiers=tuple(tiers))


def _parse_volume_based(data: dict, errors: list[str]) -> Optional[VolumeBasedRule]:
    thresholds = []
    for i, raw in enumerate(data.get('thresholds') or [], start=1):
        value = parse_decimal(raw.get('value'), f"threshold {i} value", errors)
        try:
            min_qty = int(raw.get('min_qty'))
        except (TypeError, ValueError):
            errors.append(f"threshold {i}: min_qty must be an integer")
            continue
        if value is None:
            errors.append(f"threshold {i}: value is required")
            continue
        if min_qty < 1:
            errors.append(f"threshold {i}: min_qty must be at least 1")
            continue
        thresholds.append(VolumeThreshold(min_qty=min_qty, value=value))
    if errors:
        return None
    return VolumeBasedRule(thresholds=tuple(thresholds))


DISCOUNT_PARSERS = {
    DiscountRuleType.PERCENTAGE: _parse_percentage,
    DiscountRuleType.FIXED_AMOUNT: _parse_fixed_amount,
    DiscountRuleType.TIERED: _parse_tiered,
    DiscountRuleType.VOLUME_BASED: _parse_volume_based,
}


def parse_discount_rule_logic(rule_type, data: Optional[dict]) -> tuple[Optional[DiscountRuleLogic], list[str]]:
    """
    Parse a discount rule logic definition.

    Returns (logic, errors) - logic is None if validation failed.
    """
    errors = []
    kind = parse_enum(DiscountRuleType, rule_type, 'rule_type', errors)
    if kind is None:
        if not errors:
            errors.append("rule_type is required")
        return None, errors
    logic = DISCOUNT_PARSERS[kind](dict(data or {}), errors)
    return (logic if not errors else None), errors


def require_discount_rule_logic(rule_type, data: Optional[dict]) -> DiscountRuleLogic:
    logic, errors = parse_discount_rule_logic(rule_type, data)
    if errors:
        raise LogicDefinitionError(errors)
    return logic


# ---------------------------------------------------------------------------
# Pricing policies
# ---------------------------------------------------------------------------

def parse_rounding(data: dict, errors: list[str]) -> Optional[RoundingSpec]:
    rule = parse_enum(RoundingRule, data.get('rounding_rule'), 'rounding_rule', errors)
    if rule is None:
        return None
    direction = parse_enum(
        RoundingDirection, data.get('rounding_direction'), 'rounding_direction', errors,
        RoundingDirection.NEAREST,
    )
    return RoundingSpec(rule=rule, direction=direction)


def parse_adjustment(data: dict, errors: list[str]) -> Adjustment:
    return Adjustment(
        value=parse_decimal(data.get('adjustment_value'), 'adjustment_value', errors, Decimal('0')),
        adjustment_type=parse_enum(
            AdjustmentType, data.get('adjustment_type'), 'adjustment_type', errors,
            AdjustmentType.PERCENTAGE,
        ),
    )


def _parse_cost_plus_margin(data: dict, errors: list[str]) -> CostPlusMarginLogic:
    return CostPlusMarginLogic(
        margin_percentage=parse_decimal(data.get('margin_percentage'), 'margin_percentage', errors, Decimal('0')),
        markup_value=parse_decimal(data.get('markup_value'), 'markup_value', errors, Decimal('0')),
        cost_source=parse_optional_str(data.get('cost_source')) or 'product_catalog',
        rounding=parse_rounding(data, errors),
    )


def _parse_reference_price_book(data: dict, errors: list[str]) -> ReferencePriceBookLogic:
    source_id = parse_optional_str(data.get('source_price_book_id'))
    if source_id is None:
        errors.append("source_price_book_id is required for a reference price book policy")
    return ReferencePriceBookLogic(
        source_price_book_id=source_id or '',
        adjustment=parse_adjustment(data, errors),
        rounding=parse_rounding(data, errors),
    )


def _parse_index_based(data: dict, errors: list[str]) -> IndexBasedLogic:
    index_type = parse_optional_str(data.get('index_type')) or 'emp'
    if index_type != 'emp':
        errors.append(f"unsupported index_type '{index_type}', only 'emp' is available")
    return IndexBasedLogic(
        multiplier=parse_decimal(data.get('index_multiplier'), 'index_multiplier', errors, Decimal('1')),
        fixed_adjustment=parse_decimal(
            data.get('index_fixed_adjustment'), 'index_fixed_adjustment', errors, Decimal('0'),
        ),
        market=parse_optional_str(data.get('emp_market')),
        rounding=parse_rounding(data, errors),
    )


def _parse_fixed_adjustment(data: dict, errors: list[str]) -> FixedAdjustmentLogic:
    return FixedAdjustmentLogic(
        adjustment=parse_adjustment(data, errors),
        rounding=parse_rounding(data, errors),
    )


def _parse_rounding_policy(data: dict, errors: list[str]) -> Optional[RoundingLogic]:
    rounding = parse_rounding(data, errors)
    if rounding is None:
        if not errors:
            errors.append("rounding_rule is required for a rounding policy")
        return None
    return RoundingLogic(rounding=rounding)


POLICY_PARSERS = {
    PricingPolicyType.COST_PLUS_MARGIN: _parse_cost_plus_margin,
    PricingPolicyType.REFERENCE_PRICE_BOOK: _parse_reference_price_book,
    PricingPolicyType.INDEX_BASED: _parse_index_based,
    PricingPolicyType.FIXED_ADJUSTMENT: _parse_fixed_adjustment,
    PricingPolicyType.ROUNDING: _parse_rounding_policy,
}


def parse_policy_logic(policy_type, data: Optional[dict]) -> tuple[Optional[PolicyLogic], list[str]]:
    """
    Parse a pricing policy logic definition.

    Returns (logic, errors) - logic is None if validation failed.
    """
    errors = []
    kind = parse_enum(PricingPolicyType, policy_type, 'policy_type', errors)
    if kind is None:
        if not errors:
            errors.append("policy_type is required")
        return None, errors
    logic = POLICY_PARSERS[kind](dict(data or {}), errors)
    return (logic if not errors else None), errors


def require_policy_logic(policy_type, data: Optional[dict]) -> PolicyLogic:
    logic, errors = parse_policy_logic(policy_type, data)
    if errors:
        raise LogicDefinitionError(errors)
    return logic


def _parse_day(value, name: str, low: int, high: int, bounds: str, errors: list[str]) -> Optional[int]:
    if value is None or (isinstance(value, str) and value.strip() == ''):
        return None
    try:
        day = int(str(value).strip())
    except ValueError:
        errors.append(f"{name} must be a whole number, got '{value}'")
        return None
    if not low <= day <= high:
        errors.append(f"{name} must be between {bounds}")
        return None
    return day


def parse_schedule(data: Optional[dict]) -> tuple[Optional[ScheduleSpec], list[str]]:
    """Parse a schedule block; an empty block means no schedule."""
    if not data:
        return None, []
    errors = []
    frequency = parse_enum(ScheduleFrequency, data.get('frequency'), 'frequency', errors, ScheduleFrequency.DAILY)

    time = parse_optional_str(data.get('time')) or '00:00'
    try:
        hour, minute = (int(part) for part in time.split(':'))
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(time)
    except ValueError:
        errors.append(f"time must be HH:MM, got '{time}'")

    day_of_week = _parse_day(data.get('day_of_week'), 'day_of_week', 0, 6, "0 (Monday) and 6 (Sunday)", errors)
    day_of_month = _parse_day(data.get('day_of_month'), 'day_of_month', 1, 31, "1 and 31", errors)

    if errors:
        return None, errors
    return ScheduleSpec(
        frequency=frequency,
        time=time,
        day_of_week=day_of_week,
        day_of_month=day_of_month,
    ), []
