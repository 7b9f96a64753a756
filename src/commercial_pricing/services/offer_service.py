"""
Offer Service - Offer lifecycle, context resolution and price resolution.

Draft → Active ⇄ Paused; Active → Expired (time-driven);
any non-terminal state → Cancelled.

An Offer never stores a price: the base price always comes from its linked
Price Book, and its Benefit (optionally backed by a Discount Rule) turns
that into the final price.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..config.log import get_logger
from ..engine.allocation import AllocationConstraintChecker, StoreAllocationChecker, eligibility_violations
from ..engine.audit import AuditSink, InMemoryAuditSink
from ..engine.enums import OfferStatus
from ..engine.models import CustomerContext, DiscountRule, Offer
from ..engine.money import format_money, to_money, to_utc, utcnow
from ..engine.store import CommercialStore
from ..exceptions import InvalidTransitionError

logger = get_logger(__name__)


@dataclass
class PriceResolution:
    """Outcome of resolving an Offer's price. Prices are None when ``error`` is set."""
    offer: Offer
    base_price: Optional[Decimal]
    final_price: Optional[Decimal]
    discount: Optional[Decimal]
    discount_percent: Optional[Decimal]
    error: Optional[str] = None

    def is_success(self) -> bool:
        return self.error is None and self.final_price is not None

    def has_error(self) -> bool:
        return self.error is not None

    def has_discount(self) -> bool:
        return self.discount is not None and self.discount > 0

    def summary(self, currency: str = 'EUR') -> str:
        if not self.is_success():
            return self.error or "Price resolution failed"
        if self.has_discount():
            return (
                f"{format_money(self.final_price, currency)} "
                f"(was {format_money(self.base_price, currency)}, save {self.discount_percent:.1f}%)"
            )
        return format_money(self.final_price, currency)


@dataclass
class EligibilityValidation:
    """Per-dimension eligibility check for one customer against one Offer."""
    is_eligible: bool
    market_check: bool = True
    customer_type_check: bool = True
    membership_tier_check: bool = True
    failure_reasons: list[str] = field(default_factory=list)

    def summary(self) -> str:
        if self.is_eligible:
            return "Customer is eligible for this offer"
        if not self.failure_reasons:
            return "Customer is not eligible for this offer"
        return "Not eligible: " + "; ".join(self.failure_reasons)


class OfferService:
    """State machine and resolution over the store's Offers."""

    def __init__(
        self,
        store: CommercialStore,
        audit: Optional[AuditSink] = None,
        allocation_checker: Optional[AllocationConstraintChecker] = None,
    ):
        self.store = store
        self.audit = audit or InMemoryAuditSink()
        self.allocation_checker = allocation_checker or StoreAllocationChecker(store)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def activation_errors(self, offer: Offer) -> list[str]:
        """Every reason the Offer cannot be activated right now."""
        errors = []
        if not offer.is_draft():
            errors.append("Offer must be in Draft status to activate")

        book = self.store.price_books.get(offer.price_book_id)
        if book is None:
            errors.append("Offer must have a Price Book assigned")
        elif not book.is_active():
            errors.append("Price Book must be active before activating the offer")

        if book is None or book.entry_for(offer.item_id) is None:
            errors.append("No price entry found in the linked Price Book for this SKU")

        channel = self.store.channels.get(offer.channel_id)
        errors.extend(eligibility_violations(self.allocation_checker, offer.eligibility, channel))
        return errors

    def can_activate(self, offer: Offer) -> bool:
        return not self.activation_errors(offer)

    def activate(self, offer: Offer) -> Offer:
        errors = self.activation_errors(offer)
        if errors:
            raise InvalidTransitionError("Cannot activate Offer", errors)
        return self._transition(offer, OfferStatus.ACTIVE)

    def pause(self, offer: Offer) -> Offer:
        if not offer.can_be_paused():
            raise InvalidTransitionError(
                "Cannot pause Offer",
                [f"current status '{offer.status.label}' is not Active"],
            )
        return self._transition(offer, OfferStatus.PAUSED)

    def resume(self, offer: Offer) -> Offer:
        if not offer.can_be_resumed():
            raise InvalidTransitionError(
                "Cannot resume Offer",
                [f"current status '{offer.status.label}' is not Paused"],
            )
        book = self.store.price_books.get(offer.price_book_id)
        if book is None or not book.is_active():
            raise InvalidTransitionError(
                "Cannot resume Offer",
                ["the referenced Price Book is no longer active"],
            )
        return self._transition(offer, OfferStatus.ACTIVE)

    def cancel(self, offer: Offer) -> Offer:
        if not offer.can_be_cancelled():
            raise InvalidTransitionError(
                "Cannot cancel Offer",
                [f"current status '{offer.status.label}' is terminal"],
            )
        return self._transition(offer, OfferStatus.CANCELLED)

    def expire(self, offer: Offer) -> Offer:
        if not offer.is_active():
            raise InvalidTransitionError(
                "Cannot expire Offer",
                [f"current status '{offer.status.label}' is not Active"],
            )
        return self._transition(offer, OfferStatus.EXPIRED)

    def expire_due(self, at: Optional[datetime] = None) -> list[Offer]:
        """Expire every Active Offer whose validity ended before ``at``."""
        at = to_utc(at) if at is not None else utcnow()
        with self.store.transaction():
            due = sorted(
                (o for o in self.store.offers.values() if o.should_auto_expire(at)),
                key=Offer.sort_key,
            )
            for offer in due:
                self.expire(offer)
        if due:
            logger.info(f"Expired {len(due)} offer(s) past their validity")
        return due

    def _transition(self, offer: Offer, new_status: OfferStatus) -> Offer:
        old_status = offer.status
        offer.status = new_status
        logger.info(f"Offer {offer.id}: {old_status.value} -> {new_status.value}")
        self.audit.record('Offer', offer.id, old_status.value, new_status.value)
        return offer

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def get_active_offers_for_context(
        self,
        item_id: str,
        channel_id: str,
        at: Optional[datetime] = None,
    ) -> list[Offer]:
        """Active Offers for item/channel valid at ``at``, oldest first."""
        at = to_utc(at) if at is not None else utcnow()
        offers = [
            offer for offer in self.store.offers.values()
            if offer.is_active()
            and offer.item_id == item_id
            and offer.channel_id == channel_id
            and offer.is_within_validity(at)
        ]
        return sorted(offers, key=Offer.sort_key)

    def resolve_active_for_context(
        self,
        item_id: str,
        channel_id: str,
        customer: Optional[CustomerContext] = None,
        at: Optional[datetime] = None,
    ) -> Optional[Offer]:
        """
        The Offer that applies to a sale, or None.

        Without a customer the oldest matching Offer wins; with one, the
        oldest whose eligibility accepts the customer.
        """
        offers = self.get_active_offers_for_context(item_id, channel_id, at)
        if customer is None:
            return offers[0] if offers else None
        for offer in offers:
            if self.validate_eligibility(offer, customer):
                return offer
        return None

    def discount_rule_for(self, offer: Offer) -> Optional[DiscountRule]:
        if offer.benefit is None or offer.benefit.discount_rule_id is None:
            return None
        return self.store.discount_rules.get(offer.benefit.discount_rule_id)

    def resolve_price(self, offer: Offer, quantity: int = 1) -> PriceResolution:
        book = self.store.price_books.get(offer.price_book_id)
        entry = book.entry_for(offer.item_id) if book is not None else None
        if entry is None:
            return PriceResolution(
                offer=offer,
                base_price=None,
                final_price=None,
                discount=None,
                discount_percent=None,
                error="No base price found in the linked Price Book for this SKU",
            )

        base = to_money(entry.base_price)
        benefit = offer.benefit
        if benefit is None or benefit.is_none():
            return PriceResolution(offer, base, base, to_money(0), to_money(0))

        rule = self.discount_rule_for(offer)
        return PriceResolution(
            offer=offer,
            base_price=base,
            final_price=to_money(benefit.final_price(base, rule, quantity)),
            discount=to_money(benefit.discount_amount(base, rule, quantity)),
            discount_percent=to_money(benefit.discount_percent(base, rule, quantity)),
        )

    def resolve_price_value(self, offer: Offer, quantity: int = 1) -> Optional[Decimal]:
        return self.resolve_price(offer, quantity).final_price

    def validate_eligibility(self, offer: Offer, customer: CustomerContext) -> bool:
        if offer.eligibility is None:
            return True
        return offer.eligibility.is_context_eligible(customer)

    def validate_eligibility_detailed(self, offer: Offer, customer: CustomerContext) -> EligibilityValidation:
        eligibility = offer.eligibility
        if eligibility is None:
            return EligibilityValidation(is_eligible=True)

        reasons = []
        market_ok = True
        if customer.market is not None and eligibility.has_market_restrictions():
            market_ok = eligibility.is_market_eligible(customer.market)
            if not market_ok:
                reasons.append(f"Market '{customer.market}' is not in the allowed markets")

        type_ok = True
        if customer.customer_type is not None and eligibility.has_customer_type_restrictions():
            type_ok = eligibility.is_customer_type_eligible(customer.customer_type)
            if not type_ok:
                reasons.append(f"Customer type '{customer.customer_type}' is not in the allowed types")

        tier_ok = True
        if customer.membership_tier is not None and eligibility.has_membership_tier_restrictions():
            tier_ok = eligibility.is_membership_tier_eligible(customer.membership_tier)
            if not tier_ok:
                reasons.append(f"Membership tier '{customer.membership_tier}' is not in the allowed tiers")

        return EligibilityValidation(
            is_eligible=market_ok and type_ok and tier_ok,
            market_check=market_ok,
            customer_type_check=type_ok,
            membership_tier_check=tier_ok,
            failure_reasons=reasons,
        )
