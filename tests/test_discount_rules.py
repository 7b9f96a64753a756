from decimal import Decimal

import pytest

from commercial_pricing.engine import discount_rules
from commercial_pricing.engine.enums import BenefitType, DiscountRuleStatus
from commercial_pricing.engine.logic import (
    FixedAmountRule,
    PercentageRule,
    PriceTier,
    TieredRule,
    VolumeBasedRule,
    VolumeThreshold,
)
from commercial_pricing.engine.models import Benefit, DiscountRule

D = Decimal

TIERED = TieredRule(tiers=(
    PriceTier(value=D('5'), min_price=D('0'), max_price=D('50')),
    PriceTier(value=D('10'), min_price=D('50'), max_price=None),
))

VOLUME = VolumeBasedRule(thresholds=(
    VolumeThreshold(min_qty=6, value=D('2')),
    VolumeThreshold(min_qty=12, value=D('4')),
))


def test_percentage_and_fixed():
    assert discount_rules.discount(PercentageRule(D('10')), D('100')) == D('10')
    assert discount_rules.discount(FixedAmountRule(D('15')), D('100')) == D('15')
    assert discount_rules.final_price(FixedAmountRule(D('150')), D('100')) == D('0')


def test_tiered_first_matching_tier_wins_on_boundary():
    # 50 sits in both tiers; declaration order decides
    assert discount_rules.discount(TIERED, D('50')) == D('2.5')
    assert discount_rules.discount(TIERED, D('100')) == D('10')
    assert discount_rules.discount(TIERED, D('20')) == D('1')


def test_tiered_without_match_is_zero():
    rule = TieredRule(tiers=(PriceTier(value=D('5'), min_price=D('100'), max_price=D('200')),))
    assert discount_rules.discount(rule, D('50')) == D('0')


def test_volume_uses_highest_reached_threshold():
    assert discount_rules.discount(VOLUME, D('30'), 1) == D('0')
    assert discount_rules.discount(VOLUME, D('30'), 6) == D('2')
    assert discount_rules.discount(VOLUME, D('30'), 11) == D('2')
    assert discount_rules.discount(VOLUME, D('30'), 24) == D('4')


def test_unknown_logic_is_rejected():
    with pytest.raises(TypeError):
        discount_rules.discount(object(), D('10'))


def test_describe():
    assert discount_rules.describe(PercentageRule(D('15'))) == "15% off"
    assert discount_rules.describe(TIERED) == "2 tier(s) configured"
    assert discount_rules.describe(VOLUME, 'EUR') == "EUR 2.00 off when qty >= 6"


class TestBenefit:

    def test_percentage(self):
        benefit = Benefit(BenefitType.PERCENTAGE_DISCOUNT, D('10'))
        assert benefit.final_price(D('100')) == D('90')
        assert benefit.discount_amount(D('100')) == D('10')
        assert benefit.discount_percent(D('100')) == D('10')

    def test_fixed_discount_never_negative(self):
        benefit = Benefit(BenefitType.FIXED_DISCOUNT, D('150'))
        assert benefit.final_price(D('100')) == D('0')
        assert benefit.discount_amount(D('100')) == D('100')

    def test_fixed_price(self):
        benefit = Benefit(BenefitType.FIXED_PRICE, D('79'))
        assert benefit.final_price(D('100')) == D('79')
        assert benefit.discount_amount(D('100')) == D('21')

    def test_fixed_price_above_base_gives_no_discount(self):
        benefit = Benefit(BenefitType.FIXED_PRICE, D('120'))
        assert benefit.final_price(D('100')) == D('120')
        assert benefit.discount_amount(D('100')) == D('0')

    def test_none(self):
        benefit = Benefit()
        assert benefit.final_price(D('100')) == D('100')
        assert benefit.discount_percent(D('100')) == D('0')

    def test_active_rule_replaces_inline_value(self):
        rule = DiscountRule(id='dr', name='Volume', logic=VOLUME)
        benefit = Benefit(BenefitType.FIXED_DISCOUNT, D('1'), discount_rule_id='dr')
        assert benefit.final_price(D('30'), rule, quantity=6) == D('28')
        assert benefit.final_price(D('30'), rule, quantity=1) == D('30')

    def test_inactive_rule_is_ignored(self):
        rule = DiscountRule(id='dr', name='Volume', logic=VOLUME, status=DiscountRuleStatus.INACTIVE)
        benefit = Benefit(BenefitType.FIXED_DISCOUNT, D('1'), discount_rule_id='dr')
        assert benefit.final_price(D('30'), rule, quantity=6) == D('29')

    @pytest.mark.parametrize("benefit", [
        Benefit(BenefitType.PERCENTAGE_DISCOUNT, D('35')),
        Benefit(BenefitType.FIXED_DISCOUNT, D('12.50')),
        Benefit(BenefitType.NONE),
    ])
    def test_discounts_never_raise_price(self, benefit):
        for base in (D('0'), D('9.99'), D('100')):
            final = benefit.final_price(base)
            assert D('0') <= final <= base

    @pytest.mark.parametrize("benefit_type,values", [
        (BenefitType.PERCENTAGE_DISCOUNT, ('0', '5', '12.5', '50', '99', '100')),
        (BenefitType.FIXED_DISCOUNT, ('0', '0.01', '10', '49.99', '80', '250')),
    ])
    def test_bigger_discount_never_costs_more(self, benefit_type, values):
        for base in (D('19.99'), D('80'), D('210')):
            finals = [Benefit(benefit_type, D(v)).final_price(base) for v in values]
            assert finals == sorted(finals, reverse=True)
            assert finals[0] == base

    def test_summary(self):
        assert Benefit(BenefitType.PERCENTAGE_DISCOUNT, D('10')).summary() == "10% off"
        assert Benefit(BenefitType.FIXED_PRICE, D('79')).summary('EUR') == "Fixed price: EUR 79.00"
