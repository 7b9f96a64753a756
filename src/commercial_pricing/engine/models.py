"""
Data models for the commercial pricing engine.

Uses dataclasses for structured, type-safe data representation. Records are
mutable and owned by the CommercialStore; only the services change their
status fields. Execution records are frozen.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from . import discount_rules
from .enums import (
    AllocationStatus,
    BenefitType,
    BundlePricingLogic,
    BundleStatus,
    DiscountRuleStatus,
    DiscountRuleType,
    ExecutionCadence,
    ExecutionStatus,
    ExecutionType,
    ItemStatus,
    OfferStatus,
    OfferType,
    OfferVisibility,
    PriceBookStatus,
    PriceSource,
    PricingPolicyStatus,
    PricingPolicyType,
    ScopeType,
)
from .logic import DiscountRuleLogic, PolicyLogic, ScheduleSpec
from .money import format_money, to_decimal, to_utc, utcnow

ZERO = Decimal('0')


@dataclass
class TraceStep:
    """A single step in a resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


# ---------------------------------------------------------------------------
# Upstream records (read-only to the pricing core)
# ---------------------------------------------------------------------------

@dataclass
class SellableItem:
    """A fully specified commercial unit (variant x format x case configuration)."""
    id: str
    sku_code: str
    product_name: str
    wine_variant_id: Optional[str] = None
    format_id: Optional[str] = None
    lifecycle_status: ItemStatus = ItemStatus.ACTIVE
    unit_cost: Optional[Decimal] = None

    @property
    def is_active(self) -> bool:
        return self.lifecycle_status == ItemStatus.ACTIVE


@dataclass
class Channel:
    id: str
    name: str
    channel_type: str = 'b2c'
    default_currency: Optional[str] = None


@dataclass(frozen=True)
class CustomerContext:
    """Audience attributes used for Offer eligibility."""
    market: Optional[str] = None
    customer_type: Optional[str] = None
    membership_tier: Optional[str] = None
    customer_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'CustomerContext':
        return cls(
            market=data.get('market'),
            customer_type=data.get('customer_type') or data.get('customerType'),
            membership_tier=data.get('membership_tier') or data.get('membershipTier'),
            customer_id=data.get('customer_id') or data.get('customerId'),
        )


@dataclass
class MarketPriceReference:
    """Estimated market price (EMP) fetched from an external source."""
    id: str
    item_id: str
    market: str
    value: Decimal
    fetched_at: Optional[datetime] = None
    source: str = 'external'
    confidence: str = 'medium'

    def age(self, now: datetime) -> Optional[timedelta]:
        if self.fetched_at is None:
            return None
        return to_utc(now) - to_utc(self.fetched_at)

    def is_fresh(self, now: datetime, fresh_hours: int = 24) -> bool:
        age = self.age(now)
        return age is not None and age < timedelta(hours=fresh_hours)

    def is_stale(self, now: datetime, stale_days: int = 7) -> bool:
        age = self.age(now)
        return age is None or age > timedelta(days=stale_days)

    def freshness(self, now: datetime, fresh_hours: int = 24, stale_days: int = 7) -> str:
        if self.fetched_at is None:
            return 'unknown'
        if self.is_fresh(now, fresh_hours):
            return 'fresh'
        if self.is_stale(now, stale_days):
            return 'stale'
        return 'recent'


@dataclass
class AllocationConstraint:
    """Upstream restriction on where an allocation may be sold. Empty list = unrestricted."""
    id: str
    allowed_channels: list[str] = field(default_factory=list)
    allowed_markets: list[str] = field(default_factory=list)
    allowed_customer_types: list[str] = field(default_factory=list)

    def is_channel_allowed(self, channel: Channel) -> bool:
        if not self.allowed_channels:
            return True
        return channel.id in self.allowed_channels or channel.channel_type in self.allowed_channels

    def is_market_allowed(self, market: str) -> bool:
        return not self.allowed_markets or market in self.allowed_markets

    def is_customer_type_allowed(self, customer_type: str) -> bool:
        return not self.allowed_customer_types or customer_type in self.allowed_customer_types


@dataclass
class Allocation:
    id: str
    wine_variant_id: Optional[str]
    format_id: Optional[str]
    status: AllocationStatus = AllocationStatus.ACTIVE
    total_quantity: int = 0
    sold_quantity: int = 0
    constraint_id: Optional[str] = None
    supply_form: str = 'owned'

    @property
    def remaining(self) -> int:
        return max(0, self.total_quantity - self.sold_quantity)

    def covers(self, item: SellableItem) -> bool:
        return self.wine_variant_id == item.wine_variant_id and self.format_id == item.format_id


# ---------------------------------------------------------------------------
# Price Books
# ---------------------------------------------------------------------------

@dataclass
class PriceBookEntry:
    item_id: str
    base_price: Decimal
    source: PriceSource = PriceSource.MANUAL
    policy_id: Optional[str] = None


@dataclass
class Approver:
    id: str
    name: str
    can_approve_price_books: bool = False


@dataclass
class PriceBook:
    """Scoped, versioned document of authoritative base prices."""
    id: str
    name: str
    market: str
    currency: str
    valid_from: date
    valid_to: Optional[date] = None
    channel_id: Optional[str] = None
    status: PriceBookStatus = PriceBookStatus.DRAFT
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    entries: dict[str, PriceBookEntry] = field(default_factory=dict)

    @property
    def context_key(self) -> tuple:
        return (self.market, self.channel_id, self.currency)

    def is_draft(self) -> bool:
        return self.status == PriceBookStatus.DRAFT

    def is_active(self) -> bool:
        return self.status == PriceBookStatus.ACTIVE

    def is_expired(self) -> bool:
        return self.status == PriceBookStatus.EXPIRED

    def is_archived(self) -> bool:
        return self.status == PriceBookStatus.ARCHIVED

    def is_editable(self) -> bool:
        return self.is_draft()

    def can_be_archived(self) -> bool:
        return self.status in (PriceBookStatus.ACTIVE, PriceBookStatus.EXPIRED)

    def has_entries(self) -> bool:
        return bool(self.entries)

    def entry_for(self, item_id: str) -> Optional[PriceBookEntry]:
        return self.entries.get(item_id)

    def is_valid_on(self, day: date) -> bool:
        if day < self.valid_from:
            return False
        return self.valid_to is None or day <= self.valid_to

    def has_valid_window(self) -> bool:
        """False when valid_to falls before valid_from (valid on no day)."""
        return self.valid_to is None or self.valid_to >= self.valid_from

    def overlaps(self, other: 'PriceBook') -> bool:
        """Closed-interval overlap; an open end extends forever."""
        if self.valid_to is not None and other.valid_from > self.valid_to:
            return False
        if other.valid_to is not None and self.valid_from > other.valid_to:
            return False
        return True


# ---------------------------------------------------------------------------
# Discount rules, benefits, eligibility
# ---------------------------------------------------------------------------

@dataclass
class DiscountRule:
    """Reusable, named discount definition referenced by Offer Benefits."""
    id: str
    name: str
    logic: DiscountRuleLogic
    status: DiscountRuleStatus = DiscountRuleStatus.ACTIVE

    @property
    def rule_type(self) -> DiscountRuleType:
        return self.logic.rule_type

    def is_active(self) -> bool:
        return self.status == DiscountRuleStatus.ACTIVE

    def calculate_discount(self, base_price: Decimal, quantity: int = 1) -> Decimal:
        return discount_rules.discount(self.logic, to_decimal(base_price), quantity)

    def calculate_final_price(self, base_price: Decimal, quantity: int = 1) -> Decimal:
        return discount_rules.final_price(self.logic, to_decimal(base_price), quantity)

    def summary(self, currency: str = 'EUR') -> str:
        return discount_rules.describe(self.logic, currency)


@dataclass
class Benefit:
    """Discount or price override attached to an Offer."""
    benefit_type: BenefitType = BenefitType.NONE
    value: Optional[Decimal] = None
    discount_rule_id: Optional[str] = None

    def is_none(self) -> bool:
        return self.benefit_type == BenefitType.NONE

    def is_discount(self) -> bool:
        return self.benefit_type in (BenefitType.PERCENTAGE_DISCOUNT, BenefitType.FIXED_DISCOUNT)

    def final_price(
        self,
        base_price: Decimal,
        rule: Optional[DiscountRule] = None,
        quantity: int = 1,
    ) -> Decimal:
        """
        Price after applying this benefit, never negative.

        An active discount rule, when given, replaces the inline value for
        the two discount types.
        """
        base = to_decimal(base_price)
        value = to_decimal(self.value) if self.value is not None else ZERO

        if self.benefit_type == BenefitType.NONE:
            return base
        if self.benefit_type == BenefitType.FIXED_PRICE:
            return max(ZERO, value)
        if rule is not None and rule.is_active():
            return rule.calculate_final_price(base, quantity)
        if self.benefit_type == BenefitType.PERCENTAGE_DISCOUNT:
            return max(ZERO, base * (1 - value / 100))
        return max(ZERO, base - value)

    def discount_amount(
        self,
        base_price: Decimal,
        rule: Optional[DiscountRule] = None,
        quantity: int = 1,
    ) -> Decimal:
        if self.is_none():
            return ZERO
        base = to_decimal(base_price)
        return max(ZERO, base - self.final_price(base, rule, quantity))

    def discount_percent(
        self,
        base_price: Decimal,
        rule: Optional[DiscountRule] = None,
        quantity: int = 1,
    ) -> Decimal:
        base = to_decimal(base_price)
        if base <= 0 or self.is_none():
            return ZERO
        return self.discount_amount(base, rule, quantity) / base * 100

    def summary(self, currency: str = 'EUR') -> str:
        value = to_decimal(self.value) if self.value is not None else ZERO
        if self.benefit_type == BenefitType.PERCENTAGE_DISCOUNT:
            return f"{value:.0f}% off"
        if self.benefit_type == BenefitType.FIXED_DISCOUNT:
            return f"{format_money(value, currency)} off"
        if self.benefit_type == BenefitType.FIXED_PRICE:
            return f"Fixed price: {format_money(value, currency)}"
        return "Price Book price (no discount)"


@dataclass
class Eligibility:
    """Audience restrictions on an Offer. Empty allow-list = unrestricted."""
    allowed_markets: list[str] = field(default_factory=list)
    allowed_customer_types: list[str] = field(default_factory=list)
    allowed_membership_tiers: list[str] = field(default_factory=list)
    allocation_constraint_id: Optional[str] = None

    def has_market_restrictions(self) -> bool:
        return bool(self.allowed_markets)

    def has_customer_type_restrictions(self) -> bool:
        return bool(self.allowed_customer_types)

    def has_membership_tier_restrictions(self) -> bool:
        return bool(self.allowed_membership_tiers)

    def is_market_eligible(self, market: str) -> bool:
        return not self.has_market_restrictions() or market in self.allowed_markets

    def is_customer_type_eligible(self, customer_type: str) -> bool:
        return not self.has_customer_type_restrictions() or customer_type in self.allowed_customer_types

    def is_membership_tier_eligible(self, tier: str) -> bool:
        return not self.has_membership_tier_restrictions() or tier in self.allowed_membership_tiers

    def is_context_eligible(self, customer: CustomerContext) -> bool:
        """Unset customer attributes pass their check."""
        if customer.market is not None and not self.is_market_eligible(customer.market):
            return False
        if customer.customer_type is not None and not self.is_customer_type_eligible(customer.customer_type):
            return False
        if customer.membership_tier is not None and not self.is_membership_tier_eligible(customer.membership_tier):
            return False
        return True

    def summary(self) -> str:
        parts = []
        for count, noun in (
            (len(self.allowed_markets), 'market'),
            (len(self.allowed_customer_types), 'customer type'),
            (len(self.allowed_membership_tiers), 'membership tier'),
        ):
            if count:
                parts.append(f"{count} {noun}{'s' if count > 1 else ''}")
        if not parts:
            return "Open to all"
        return "Restricted to: " + ", ".join(parts)


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------

@dataclass
class Offer:
    """Activation of sellability of one item on one channel through one Price Book."""
    id: str
    name: str
    item_id: str
    channel_id: str
    price_book_id: str
    valid_from: datetime
    valid_to: Optional[datetime] = None
    offer_type: OfferType = OfferType.STANDARD
    visibility: OfferVisibility = OfferVisibility.PUBLIC
    status: OfferStatus = OfferStatus.DRAFT
    campaign_tag: Optional[str] = None
    eligibility: Optional[Eligibility] = None
    benefit: Optional[Benefit] = None
    created_at: datetime = field(default_factory=utcnow)

    def is_draft(self) -> bool:
        return self.status == OfferStatus.DRAFT

    def is_active(self) -> bool:
        return self.status == OfferStatus.ACTIVE

    def is_paused(self) -> bool:
        return self.status == OfferStatus.PAUSED

    def is_terminal(self) -> bool:
        return self.status in (OfferStatus.CANCELLED, OfferStatus.EXPIRED)

    def can_be_paused(self) -> bool:
        return self.is_active()

    def can_be_resumed(self) -> bool:
        return self.is_paused()

    def can_be_cancelled(self) -> bool:
        return not self.is_terminal()

    def is_editable(self) -> bool:
        return self.is_draft()

    def is_within_validity(self, at: datetime) -> bool:
        at = to_utc(at)
        if at < to_utc(self.valid_from):
            return False
        return self.valid_to is None or at <= to_utc(self.valid_to)

    def should_auto_expire(self, at: datetime) -> bool:
        if self.valid_to is None or not self.is_active():
            return False
        return to_utc(at) > to_utc(self.valid_to)

    def sort_key(self) -> tuple:
        return (to_utc(self.created_at), self.id)


# ---------------------------------------------------------------------------
# Bundles
# ---------------------------------------------------------------------------

@dataclass
class BundleComponent:
    id: str
    item_id: str
    quantity: int = 1


@dataclass
class Bundle:
    """Composite sellable made of a fixed multiset of items."""
    id: str
    name: str
    bundle_sku: str
    pricing_logic: BundlePricingLogic = BundlePricingLogic.SUM_COMPONENTS
    components: list[BundleComponent] = field(default_factory=list)
    fixed_price: Optional[Decimal] = None
    percentage_off: Optional[Decimal] = None
    status: BundleStatus = BundleStatus.DRAFT

    def is_draft(self) -> bool:
        return self.status == BundleStatus.DRAFT

    def is_active(self) -> bool:
        return self.status == BundleStatus.ACTIVE

    def is_inactive(self) -> bool:
        return self.status == BundleStatus.INACTIVE

    def has_components(self) -> bool:
        return bool(self.components)

    def total_quantity(self) -> int:
        return sum(c.quantity for c in self.components)

    def calculate_bundle_price(self, components_total: Decimal) -> Decimal:
        total = to_decimal(components_total)
        if self.pricing_logic == BundlePricingLogic.FIXED_PRICE:
            return to_decimal(self.fixed_price) if self.fixed_price is not None else total
        if self.pricing_logic == BundlePricingLogic.PERCENTAGE_OFF_SUM:
            if self.percentage_off is None:
                return total
            return total * (1 - to_decimal(self.percentage_off) / 100)
        return total


# ---------------------------------------------------------------------------
# Pricing policies
# ---------------------------------------------------------------------------

@dataclass
class PolicyScope:
    scope_type: ScopeType = ScopeType.ALL
    reference: Optional[str] = None
    markets: list[str] = field(default_factory=list)
    channels: list[str] = field(default_factory=list)


@dataclass
class PricingPolicy:
    """Algorithm that generates base prices for a scope of items into a target Price Book."""
    id: str
    name: str
    logic: PolicyLogic
    target_price_book_id: Optional[str] = None
    scope: Optional[PolicyScope] = None
    status: PricingPolicyStatus = PricingPolicyStatus.DRAFT
    execution_cadence: ExecutionCadence = ExecutionCadence.MANUAL
    schedule: Optional[ScheduleSpec] = None
    last_executed_at: Optional[datetime] = None

    @property
    def policy_type(self) -> PricingPolicyType:
        return self.logic.policy_type

    def is_active(self) -> bool:
        return self.status == PricingPolicyStatus.ACTIVE

    def can_be_executed(self) -> bool:
        return self.is_active()

    def can_dry_run(self) -> bool:
        return self.status != PricingPolicyStatus.ARCHIVED


@dataclass(frozen=True)
class PolicyExecution:
    """Immutable record of one policy run."""
    id: str
    policy_id: str
    executed_at: datetime
    execution_type: ExecutionType
    skus_processed: int
    prices_generated: int
    errors_count: int
    status: ExecutionStatus
    log_summary: str
