from decimal import Decimal

import pytest

from commercial_pricing.engine.enums import DiscountRuleStatus, DiscountRuleType, OfferStatus
from commercial_pricing.engine.logic import PercentageRule
from commercial_pricing.exceptions import InvalidTransitionError, LogicDefinitionError
from commercial_pricing.services.discount_rule_service import DiscountRuleService


@pytest.fixture
def service(store, audit):
    return DiscountRuleService(store, audit)


def test_create_parses_logic(service, store, audit):
    rule = service.create("Ten off", 'percentage', {'value': 10})
    assert store.discount_rules[rule.id] is rule
    assert rule.logic == PercentageRule(Decimal('10'))
    assert audit.transitions_for(rule.id) == [(None, 'active')]


def test_create_rejects_invalid_logic(service):
    with pytest.raises(LogicDefinitionError) as exc:
        service.create("Broken", 'percentage', {'value': 140})
    assert exc.value.errors == ["percentage value must be between 0 and 100"]


def test_rule_used_by_active_offer_is_locked(service, store):
    rule = store.get_discount_rule('dr-volume')

    assert not service.can_be_edited(rule)
    assert not service.can_be_deactivated(rule)
    with pytest.raises(InvalidTransitionError):
        service.update_logic(rule, 'percentage', {'value': 5})
    with pytest.raises(InvalidTransitionError):
        service.deactivate(rule)
    assert rule.rule_type == DiscountRuleType.VOLUME_BASED


def test_rule_unlocks_when_offer_is_no_longer_active(service, store):
    rule = store.get_discount_rule('dr-volume')
    store.get_offer('of-003').status = OfferStatus.PAUSED

    service.update_logic(rule, 'fixed_amount', {'value': 3})
    assert rule.rule_type == DiscountRuleType.FIXED_AMOUNT

    service.deactivate(rule)
    assert rule.status == DiscountRuleStatus.INACTIVE

    # Still referenced, so it cannot be deleted
    assert not service.can_be_deleted(rule)
    with pytest.raises(InvalidTransitionError):
        service.delete(rule)


def test_delete_unreferenced_rule(service, store, audit):
    rule = store.get_discount_rule('dr-tiered')
    service.delete(rule)
    assert 'dr-tiered' not in store.discount_rules
    assert audit.transitions_for('dr-tiered') == [('active', None)]


def test_activate_inactive_rule(service, store):
    rule = store.get_discount_rule('dr-fifteen')
    service.activate(rule)
    assert rule.is_active()
    with pytest.raises(InvalidTransitionError):
        service.activate(rule)


def test_detailed_description(service, store):
    text = service.detailed_description(store.get_discount_rule('dr-tiered'))
    assert "Rule Type: Tiered" in text
    assert "Tier 1: EUR 0.00 - EUR 50.00 → 5%" in text
    assert "Tier 2: EUR 50.00 - ∞ → 10%" in text
