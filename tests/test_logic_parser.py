from decimal import Decimal

import pytest

from commercial_pricing.engine.enums import (
    AdjustmentType,
    RoundingDirection,
    RoundingRule,
    ScheduleFrequency,
)
from commercial_pricing.engine.logic import (
    FixedAmountRule,
    IndexBasedLogic,
    PriceTier,
    ReferencePriceBookLogic,
    RoundingLogic,
    TieredRule,
    VolumeBasedRule,
)
from commercial_pricing.exceptions import LogicDefinitionError
from commercial_pricing.rules.logic_parser import (
    parse_discount_rule_logic,
    parse_policy_logic,
    parse_schedule,
    require_discount_rule_logic,
    require_policy_logic,
)


class TestDiscountRuleLogic:

    def test_tiered(self):
        logic = require_discount_rule_logic('tiered', {'tiers': [
            {'min': 0, 'max': 50, 'value': 5},
            {'min': '50', 'value': '10'},
        ]})
        assert logic == TieredRule(tiers=(
            PriceTier(value=Decimal('5'), min_price=Decimal('0'), max_price=Decimal('50')),
            PriceTier(value=Decimal('10'), min_price=Decimal('50'), max_price=None),
        ))

    def test_tier_with_inverted_range(self):
        logic, errors = parse_discount_rule_logic('tiered', {'tiers': [{'min': 50, 'max': 10, 'value': 5}]})
        assert logic is None
        assert errors == ["tier 1: max must not be below min"]

    def test_volume_based(self):
        logic = require_discount_rule_logic('volume_based', {'thresholds': [{'min_qty': 6, 'value': 2}]})
        assert isinstance(logic, VolumeBasedRule)
        assert logic.thresholds[0].min_qty == 6

    def test_volume_threshold_needs_integer_quantity(self):
        _, errors = parse_discount_rule_logic('volume_based', {'thresholds': [{'min_qty': 'six', 'value': 2}]})
        assert errors == ["threshold 1: min_qty must be an integer"]

    def test_fixed_amount(self):
        assert require_discount_rule_logic('fixed_amount', {'value': 12.5}) == FixedAmountRule(Decimal('12.5'))

    def test_non_numeric_value(self):
        with pytest.raises(LogicDefinitionError) as exc:
            require_discount_rule_logic('percentage', {'value': 'ten'})
        assert "value must be numeric, got 'ten'" in exc.value.errors

    @pytest.mark.parametrize("value", ['NaN', 'Infinity', '-inf', float('nan')])
    def test_non_finite_value(self, value):
        with pytest.raises(LogicDefinitionError) as exc:
            require_discount_rule_logic('fixed_amount', {'value': value})
        assert f"value must be a finite number, got '{value}'" in exc.value.errors

    def test_unknown_rule_type(self):
        logic, errors = parse_discount_rule_logic('bogo', {})
        assert logic is None
        assert errors[0].startswith("invalid rule_type 'bogo'")


class TestPolicyLogic:

    def test_index_based(self):
        logic = require_policy_logic('index_based', {
            'index_type': 'emp',
            'index_multiplier': 1.1,
            'index_fixed_adjustment': -2,
            'emp_market': 'FR',
            'rounding_rule': '.99',
            'rounding_direction': 'up',
        })
        assert isinstance(logic, IndexBasedLogic)
        assert logic.multiplier == Decimal('1.1')
        assert logic.fixed_adjustment == Decimal('-2')
        assert logic.market == 'FR'
        assert logic.rounding.rule == RoundingRule.ENDING_99
        assert logic.rounding.direction == RoundingDirection.UP

    def test_index_type_must_be_emp(self):
        _, errors = parse_policy_logic('index_based', {'index_type': 'competitor'})
        assert errors == ["unsupported index_type 'competitor', only 'emp' is available"]

    def test_reference_book_requires_source(self):
        _, errors = parse_policy_logic('reference_price_book', {'adjustment_value': 5})
        assert errors == ["source_price_book_id is required for a reference price book policy"]

    def test_reference_book_adjustment(self):
        logic = require_policy_logic('reference_price_book', {
            'source_price_book_id': 'pb-1',
            'adjustment_type': 'fixed',
            'adjustment_value': '-3.50',
        })
        assert isinstance(logic, ReferencePriceBookLogic)
        assert logic.adjustment.adjustment_type == AdjustmentType.FIXED
        assert logic.adjustment.apply(Decimal('10')) == Decimal('6.50')

    def test_rounding_policy_requires_rule(self):
        _, errors = parse_policy_logic('rounding', {})
        assert errors == ["rounding_rule is required for a rounding policy"]
        logic = require_policy_logic('rounding', {'rounding_rule': 'nearest_5'})
        assert isinstance(logic, RoundingLogic)
        assert logic.rounding.rule == RoundingRule.NEAREST_5
        assert logic.rounding.direction == RoundingDirection.NEAREST

    def test_invalid_rounding_rule(self):
        _, errors = parse_policy_logic('cost_plus_margin', {'rounding_rule': '.49'})
        assert errors[0].startswith("invalid rounding_rule '.49'")


class TestSchedule:

    def test_empty_block_means_no_schedule(self):
        assert parse_schedule({}) == (None, [])

    def test_weekly(self):
        schedule, errors = parse_schedule({'frequency': 'weekly', 'time': '07:30', 'day_of_week': 4})
        assert errors == []
        assert schedule.frequency == ScheduleFrequency.WEEKLY
        assert schedule.hour_minute() == (7, 30)
        assert schedule.day_of_week == 4

    @pytest.mark.parametrize("data,message", [
        ({'time': '25:00'}, "time must be HH:MM, got '25:00'"),
        ({'time': 'noon'}, "time must be HH:MM, got 'noon'"),
        ({'frequency': 'weekly', 'day_of_week': 7}, "day_of_week must be between 0 (Monday) and 6 (Sunday)"),
        ({'frequency': 'monthly', 'day_of_month': 0}, "day_of_month must be between 1 and 31"),
        ({'frequency': 'weekly', 'day_of_week': 'tue'}, "day_of_week must be a whole number, got 'tue'"),
        ({'frequency': 'monthly', 'day_of_month': '1st'}, "day_of_month must be a whole number, got '1st'"),
    ])
    def test_invalid(self, data, message):
        schedule, errors = parse_schedule(data)
        assert schedule is None
        assert errors == [message]
