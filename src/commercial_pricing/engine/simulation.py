"""
Simulation Pipeline - end-to-end price resolution with traceability.

Answers "can this item be sold on this channel at this time, and for how
much?" in five steps, each with its own verdict:

1. Allocation check: an active allocation backs the item
2. Market-price reference: latest EMP, for context only
3. Price Book resolution: active book for the channel and its base price
4. Offer resolution: the Offer that applies and its benefit
5. Final price: base minus discount, times quantity

Gaps are reported as step verdicts, never raised. Only errors make an item
unsellable; warnings are informational.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..config.log import get_logger
from ..config.settings import Settings, get_settings
from .enums import AllocationStatus, StepStatus
from .models import (
    Allocation,
    Channel,
    CustomerContext,
    MarketPriceReference,
    Offer,
    PriceBook,
    PriceBookEntry,
    SellableItem,
    TraceStep,
)
from .money import format_money, to_money, to_utc, utcnow
from .store import CommercialStore

logger = get_logger(__name__)


@dataclass
class SimulationContext:
    item: SellableItem
    channel: Channel
    at: datetime
    quantity: int = 1
    customer: Optional[CustomerContext] = None


@dataclass
class StepResult:
    """Verdict of one pipeline step."""
    name: str
    status: StepStatus
    message: str
    rationale: Optional[str] = None
    details: dict = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.status == StepStatus.ERROR

    @property
    def is_warning(self) -> bool:
        return self.status == StepStatus.WARNING


@dataclass
class AllocationCheck(StepResult):
    allocation: Optional[Allocation] = None
    remaining: Optional[int] = None


@dataclass
class MarketPriceCheck(StepResult):
    reference: Optional[MarketPriceReference] = None


@dataclass
class PriceBookResolution(StepResult):
    price_book: Optional[PriceBook] = None
    entry: Optional[PriceBookEntry] = None
    base_price: Optional[Decimal] = None


@dataclass
class OfferResolution(StepResult):
    offer: Optional[Offer] = None
    discount_amount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    benefit_description: Optional[str] = None


@dataclass
class FinalPrice(StepResult):
    final_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    quantity: int = 1
    currency: Optional[str] = None
    explanation: Optional[str] = None


@dataclass
class SimulationResult:
    """Complete result of a simulation."""
    context: SimulationContext
    allocation_check: AllocationCheck
    market_price: MarketPriceCheck
    price_book: PriceBookResolution
    offer: OfferResolution
    final_price: FinalPrice
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    @property
    def steps(self) -> list[StepResult]:
        return [self.allocation_check, self.market_price, self.price_book, self.offer, self.final_price]

    @property
    def is_sellable(self) -> bool:
        return not self.errors

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the simulation trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable simulation trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)


class SimulationPipeline:
    """
    Runs the five resolution steps for one item on one channel.

    Services are passed in so the pipeline shares their store, audit sink
    and allocation checker.
    """

    def __init__(self, store: CommercialStore, price_books, offers, settings: Optional[Settings] = None):
        self.store = store
        self.price_books = price_books
        self.offers = offers
        self.settings = settings or get_settings()

    def run(
        self,
        item_id: str,
        channel_id: str,
        at: Optional[datetime] = None,
        quantity: int = 1,
        customer: Optional[CustomerContext] = None,
    ) -> SimulationResult:
        """
        Simulate a sale.

        Raises:
            RecordNotFoundError: unknown item or channel
        """
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        context = SimulationContext(
            item=self.store.get_item(item_id),
            channel=self.store.get_channel(channel_id),
            at=to_utc(at) if at is not None else utcnow(),
            quantity=quantity,
            customer=customer,
        )

        allocation = self._check_allocation(context)
        market_price = self._check_market_price(context)
        price_book = self._resolve_price_book(context)
        offer = self._resolve_offer(context, price_book)
        final = self._final_price(context, price_book, offer)

        result = SimulationResult(
            context=context,
            allocation_check=allocation,
            market_price=market_price,
            price_book=price_book,
            offer=offer,
            final_price=final,
        )
        for step in result.steps:
            if step.is_error:
                result.errors.append(f"{step.name}: {step.message}")
            elif step.is_warning:
                result.warnings.append(f"{step.name}: {step.message}")
            result.add_trace(step.name, step.message, _trace_value(step))

        logger.debug(
            f"Simulated {context.item.sku_code} on {context.channel.id}: "
            f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)"
        )
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check_allocation(self, ctx: SimulationContext) -> AllocationCheck:
        name = "Allocation"
        allocation = next(
            (a for a in self.store.allocations_for_item(ctx.item) if a.status == AllocationStatus.ACTIVE),
            None,
        )
        if allocation is None:
            return AllocationCheck(
                name, StepStatus.ERROR,
                "No active allocation found for this SKU",
                rationale="SKU requires an active allocation to be sellable",
                details={'wine_variant_id': ctx.item.wine_variant_id, 'format_id': ctx.item.format_id},
            )

        remaining = allocation.remaining
        details = {
            'total_quantity': allocation.total_quantity,
            'sold_quantity': allocation.sold_quantity,
            'remaining': remaining,
            'supply_form': allocation.supply_form,
        }
        if remaining < ctx.quantity:
            return AllocationCheck(
                name, StepStatus.WARNING,
                f"Insufficient allocation: only {remaining} units available, requested {ctx.quantity}",
                rationale="Allocation remaining quantity is below the requested quantity",
                details=details, allocation=allocation, remaining=remaining,
            )

        constraint = self.store.constraints.get(allocation.constraint_id) if allocation.constraint_id else None
        if constraint is not None:
            details['allowed_channels'] = ", ".join(constraint.allowed_channels) or 'All'
            details['allowed_markets'] = ", ".join(constraint.allowed_markets) or 'All'
            if not constraint.is_channel_allowed(ctx.channel):
                return AllocationCheck(
                    name, StepStatus.WARNING,
                    "Channel not in allowed channels for this allocation",
                    rationale="Allocation constraint restricts channels",
                    details=details, allocation=allocation, remaining=remaining,
                )

        return AllocationCheck(
            name, StepStatus.SUCCESS,
            "Allocation available with sufficient quantity",
            rationale="Active allocation with sufficient remaining quantity",
            details=details, allocation=allocation, remaining=remaining,
        )

    def _check_market_price(self, ctx: SimulationContext) -> MarketPriceCheck:
        name = "EMP"
        emp = self.store.latest_market_price(ctx.item.id)
        if emp is None:
            return MarketPriceCheck(
                name, StepStatus.WARNING,
                "No EMP data available for this SKU",
                rationale="Pricing will proceed without a market reference",
                details={'sku_code': ctx.item.sku_code},
            )

        s = self.settings
        details = {
            'market': emp.market,
            'emp_value': format_money(emp.value),
            'confidence': emp.confidence,
            'source': emp.source,
            'freshness': emp.freshness(ctx.at, s.market_price_fresh_hours, s.market_price_stale_days),
            'fetched_at': emp.fetched_at.strftime('%Y-%m-%d %H:%M') if emp.fetched_at else 'N/A',
        }
        if emp.is_stale(ctx.at, s.market_price_stale_days):
            return MarketPriceCheck(
                name, StepStatus.WARNING,
                f"EMP data is stale (older than {s.market_price_stale_days} days)",
                rationale="EMP provides market reference for pricing decisions",
                details=details, reference=emp,
            )
        return MarketPriceCheck(
            name, StepStatus.SUCCESS,
            "EMP data available and fresh",
            rationale="EMP provides market reference for pricing decisions",
            details=details, reference=emp,
        )

    def _resolve_price_book(self, ctx: SimulationContext) -> PriceBookResolution:
        name = "Price Book"
        book = self.price_books.resolve_for_channel(ctx.channel.id, ctx.at)
        if book is None:
            return PriceBookResolution(
                name, StepStatus.ERROR,
                "No active Price Book found for this context",
                rationale="An active Price Book is required for pricing",
                details={'channel': ctx.channel.name},
            )

        details = {
            'price_book_name': book.name,
            'market': book.market,
            'currency': book.currency,
        }
        entry = book.entry_for(ctx.item.id)
        if entry is None:
            return PriceBookResolution(
                name, StepStatus.WARNING,
                "No price entry found for this SKU in the active Price Book",
                rationale="SKU must have a price entry in the Price Book",
                details=details, price_book=book,
            )

        details.update({
            'base_price': format_money(entry.base_price, book.currency),
            'price_source': entry.source.label,
            'valid_from': book.valid_from.isoformat(),
            'valid_to': book.valid_to.isoformat() if book.valid_to else 'Indefinite',
        })
        return PriceBookResolution(
            name, StepStatus.SUCCESS,
            "Price Book resolved with base price",
            rationale="Using channel-specific or default Price Book",
            details=details, price_book=book, entry=entry, base_price=to_money(entry.base_price),
        )

    def _resolve_offer(self, ctx: SimulationContext, book: PriceBookResolution) -> OfferResolution:
        name = "Offer"
        if book.base_price is None:
            return OfferResolution(
                name, StepStatus.ERROR,
                "No base price available from Price Book",
                rationale="Offer resolution requires a base price",
            )

        offer = self.offers.resolve_active_for_context(ctx.item.id, ctx.channel.id, ctx.customer, ctx.at)
        if offer is None:
            return OfferResolution(
                name, StepStatus.WARNING,
                "No active Offer found for this SKU on this Channel",
                rationale="SKU is not currently offered on this channel",
                details={'sku_code': ctx.item.sku_code, 'channel': ctx.channel.name},
            )

        details = {
            'offer_name': offer.name,
            'offer_type': offer.offer_type.label,
            'visibility': offer.visibility.label,
            'valid_from': offer.valid_from.strftime('%Y-%m-%d %H:%M'),
            'valid_to': offer.valid_to.strftime('%Y-%m-%d %H:%M') if offer.valid_to else 'Indefinite',
        }
        benefit = offer.benefit
        if benefit is None or benefit.is_none():
            details['benefit_type'] = 'None'
            return OfferResolution(
                name, StepStatus.SUCCESS,
                "Offer found - using Price Book price (no benefit)",
                rationale="Offer does not apply additional benefit to base price",
                details=details, offer=offer,
                discount_amount=to_money(0), discount_percent=to_money(0),
            )

        rule = self.offers.discount_rule_for(offer)
        base = book.base_price
        discount = to_money(benefit.discount_amount(base, rule, ctx.quantity))
        percent = to_money(benefit.discount_percent(base, rule, ctx.quantity))
        description = rule.summary(book.price_book.currency) if rule is not None and rule.is_active() \
            else benefit.summary(book.price_book.currency)
        details.update({
            'benefit_type': benefit.benefit_type.label,
            'benefit': description,
            'discount_amount': format_money(discount, book.price_book.currency),
        })
        return OfferResolution(
            name, StepStatus.SUCCESS,
            "Offer found with benefit applied",
            rationale="Benefit applied to base price from Price Book",
            details=details, offer=offer,
            discount_amount=discount, discount_percent=percent, benefit_description=description,
        )

    def _final_price(
        self,
        ctx: SimulationContext,
        book: PriceBookResolution,
        offer: OfferResolution,
    ) -> FinalPrice:
        name = "Final Price"
        if book.base_price is None:
            return FinalPrice(
                name, StepStatus.ERROR,
                "Cannot calculate final price: no base price from Price Book",
                rationale="Final price calculation requires a base price",
                quantity=ctx.quantity,
            )
        if offer.is_error:
            return FinalPrice(
                name, StepStatus.ERROR,
                f"Cannot calculate final price: {offer.message}",
                rationale="Offer resolution failed",
                quantity=ctx.quantity,
            )
        if offer.offer is None:
            return FinalPrice(
                name, StepStatus.ERROR,
                "Cannot calculate final price: no active Offer found",
                rationale="An active Offer is required for the SKU to be sellable on this channel",
                details={'base_price': format_money(book.base_price, book.price_book.currency)},
                quantity=ctx.quantity,
            )

        currency = ctx.channel.default_currency or book.price_book.currency
        base = book.base_price
        discount = offer.discount_amount or to_money(0)
        final = to_money(max(Decimal('0'), base - discount))
        total = to_money(final * ctx.quantity)
        if discount > 0:
            explanation = (
                f"Base price ({format_money(base, currency)}) - {offer.benefit_description or 'offer'} "
                f"discount ({format_money(discount, currency)}) = Final price"
            )
        else:
            explanation = "Base price from Price Book"

        return FinalPrice(
            name, StepStatus.SUCCESS,
            "Final price calculated successfully",
            rationale=explanation,
            details={
                'base_price': format_money(base, currency),
                'discount': f"{format_money(discount, currency)} ({offer.discount_percent:.1f}%)" if discount > 0 else 'None',
                'final_price': format_money(final, currency),
                'quantity': ctx.quantity,
                'total_price': format_money(total, currency),
            },
            final_price=final,
            total_price=total,
            quantity=ctx.quantity,
            currency=currency,
            explanation=explanation,
        )


def _trace_value(step: StepResult) -> Optional[str]:
    if isinstance(step, PriceBookResolution) and step.base_price is not None:
        return step.details.get('base_price')
    if isinstance(step, OfferResolution) and step.offer is not None:
        return step.offer.name
    if isinstance(step, FinalPrice) and step.final_price is not None:
        return step.details.get('total_price')
    if isinstance(step, AllocationCheck) and step.remaining is not None:
        return f"{step.remaining} remaining"
    return None
