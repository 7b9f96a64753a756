"""
Discount Rule Service - lifecycle guards for reusable discount rules.

A rule in use by an Active Offer cannot be edited or deactivated; a rule
referenced by any Offer cannot be deleted.
"""
from typing import Optional

from ..config.log import get_logger
from ..engine import discount_rules
from ..engine.audit import AuditSink, InMemoryAuditSink
from ..engine.enums import DiscountRuleStatus
from ..engine.logic import TieredRule, VolumeBasedRule
from ..engine.models import DiscountRule
from ..engine.money import format_money
from ..engine.store import CommercialStore, new_id
from ..exceptions import InvalidTransitionError
from ..rules.logic_parser import require_discount_rule_logic

logger = get_logger(__name__)


class DiscountRuleService:
    """Creates rules and guards their edits against Offers in use."""

    def __init__(self, store: CommercialStore, audit: Optional[AuditSink] = None):
        self.store = store
        self.audit = audit or InMemoryAuditSink()

    def create(self, name: str, rule_type, logic: dict, status=DiscountRuleStatus.ACTIVE) -> DiscountRule:
        rule = DiscountRule(
            id=new_id('dr'),
            name=name,
            logic=require_discount_rule_logic(rule_type, logic),
            status=DiscountRuleStatus(status),
        )
        self.store.discount_rules[rule.id] = rule
        self.audit.record('DiscountRule', rule.id, None, rule.status.value, details={'rule_type': rule.rule_type.value})
        return rule

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def active_offers_using(self, rule: DiscountRule) -> list:
        return [offer for offer in self.store.offers_for_rule(rule.id) if offer.is_active()]

    def is_referenced(self, rule: DiscountRule) -> bool:
        return bool(self.store.offers_for_rule(rule.id))

    def can_be_edited(self, rule: DiscountRule) -> bool:
        return not self.active_offers_using(rule)

    def can_be_deactivated(self, rule: DiscountRule) -> bool:
        return rule.is_active() and self.can_be_edited(rule)

    def can_be_deleted(self, rule: DiscountRule) -> bool:
        return not self.is_referenced(rule)

    # ------------------------------------------------------------------
    # Guarded operations
    # ------------------------------------------------------------------

    def update_logic(self, rule: DiscountRule, rule_type, logic: dict) -> DiscountRule:
        in_use = self.active_offers_using(rule)
        if in_use:
            raise InvalidTransitionError(
                "Cannot edit DiscountRule",
                [f"it is used by {len(in_use)} active offer(s)"],
            )
        rule.logic = require_discount_rule_logic(rule_type, logic)
        logger.info(f"DiscountRule {rule.id}: logic updated ({rule.rule_type.value})")
        self.audit.record('DiscountRule', rule.id, rule.status.value, rule.status.value, details={'rule_type': rule.rule_type.value})
        return rule

    def deactivate(self, rule: DiscountRule) -> DiscountRule:
        reasons = []
        if not rule.is_active():
            reasons.append("it is already inactive")
        in_use = self.active_offers_using(rule)
        if in_use:
            reasons.append(f"it is used by {len(in_use)} active offer(s)")
        if reasons:
            raise InvalidTransitionError("Cannot deactivate DiscountRule", reasons)
        return self._set_status(rule, DiscountRuleStatus.INACTIVE)

    def activate(self, rule: DiscountRule) -> DiscountRule:
        if rule.is_active():
            raise InvalidTransitionError("Cannot activate DiscountRule", ["it is already active"])
        return self._set_status(rule, DiscountRuleStatus.ACTIVE)

    def delete(self, rule: DiscountRule) -> None:
        referenced = self.store.offers_for_rule(rule.id)
        if referenced:
            raise InvalidTransitionError(
                "Cannot delete DiscountRule",
                [f"it is referenced by {len(referenced)} offer(s)"],
            )
        del self.store.discount_rules[rule.id]
        logger.info(f"DiscountRule {rule.id}: deleted")
        self.audit.record('DiscountRule', rule.id, rule.status.value, None)

    def _set_status(self, rule: DiscountRule, status: DiscountRuleStatus) -> DiscountRule:
        old_status = rule.status
        rule.status = status
        logger.info(f"DiscountRule {rule.id}: {old_status.value} -> {status.value}")
        self.audit.record('DiscountRule', rule.id, old_status.value, status.value)
        return rule

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def detailed_description(self, rule: DiscountRule, currency: str = 'EUR') -> str:
        lines = [
            f"Rule Type: {rule.rule_type.label}",
            f"Status: {rule.status.label}",
            "",
            f"Logic: {rule.summary(currency)}",
        ]
        if isinstance(rule.logic, TieredRule):
            for i, tier in enumerate(rule.logic.tiers, start=1):
                lines.append(f"  Tier {i}: {discount_rules.describe_tier(tier, currency)}")
        if isinstance(rule.logic, VolumeBasedRule):
            for i, threshold in enumerate(rule.logic.thresholds, start=1):
                lines.append(
                    f"  Threshold {i}: qty >= {threshold.min_qty} → {format_money(threshold.value, currency)} off"
                )
        return "\n".join(lines)
