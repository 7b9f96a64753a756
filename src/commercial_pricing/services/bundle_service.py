"""
Bundle Service - bundle pricing from a Price Book, and bundle lifecycle.

Draft → Active ⇄ Inactive. A bundle can only go Active when every component
has a positive quantity, an active item and an active allocation behind it.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from ..config.log import get_logger
from ..engine.audit import AuditSink, InMemoryAuditSink
from ..engine.enums import AllocationStatus, BundlePricingLogic, BundleStatus
from ..engine.models import Bundle, BundleComponent, PriceBook
from ..engine.money import format_money, to_money
from ..engine.store import CommercialStore
from ..exceptions import InvalidTransitionError

logger = get_logger(__name__)

ZERO = Decimal('0')


@dataclass
class ComponentPrice:
    component_id: str
    item_id: str
    sku_code: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass
class BundlePriceCalculation:
    """Bundle price breakdown. Prices are None when ``error`` is set."""
    bundle_id: str
    pricing_logic: BundlePricingLogic
    currency: str
    components_total: Optional[Decimal] = None
    final_price: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    component_prices: list[ComponentPrice] = field(default_factory=list)
    missing_items: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def is_success(self) -> bool:
        return self.error is None

    def has_discount(self) -> bool:
        return self.discount is not None and self.discount > 0

    def summary(self) -> str:
        if not self.is_success():
            return self.error
        text = format_money(self.final_price, self.currency)
        if self.has_discount():
            text += f" (components {format_money(self.components_total, self.currency)}, save {self.discount_percent:.1f}%)"
        return text


@dataclass
class ComponentValidation:
    """Per-component validation errors, keyed by component id (or 'bundle')."""
    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def messages(self) -> list[str]:
        return [", ".join(errs) for errs in self.errors.values()]

    def summary(self) -> str:
        if self.valid:
            return "All components valid"
        count = len([key for key in self.errors if key != 'bundle'])
        if count == 0:
            return "; ".join(self.messages())
        return f"{count} component(s) with issues: " + "; ".join(self.messages())


class BundleService:
    """Pricing and lifecycle for bundles held in the store."""

    def __init__(self, store: CommercialStore, audit: Optional[AuditSink] = None):
        self.store = store
        self.audit = audit or InMemoryAuditSink()

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def calculate_price(self, bundle: Bundle, price_book: PriceBook) -> BundlePriceCalculation:
        calc = BundlePriceCalculation(
            bundle_id=bundle.id,
            pricing_logic=bundle.pricing_logic,
            currency=price_book.currency,
        )
        if not bundle.has_components():
            calc.error = "Cannot calculate bundle price: bundle has no components"
            return calc

        total = ZERO
        for component in bundle.components:
            entry = price_book.entry_for(component.item_id)
            if entry is None:
                calc.missing_items.append(component.item_id)
                continue
            item = self.store.items.get(component.item_id)
            line_total = entry.base_price * component.quantity
            total += line_total
            calc.component_prices.append(ComponentPrice(
                component_id=component.id,
                item_id=component.item_id,
                sku_code=item.sku_code if item else component.item_id,
                quantity=component.quantity,
                unit_price=to_money(entry.base_price),
                line_total=to_money(line_total),
            ))

        if calc.missing_items:
            calc.component_prices = []
            calc.error = (
                "Cannot calculate bundle price: missing prices in the Price Book for "
                + ", ".join(calc.missing_items)
            )
            return calc

        final = bundle.calculate_bundle_price(total)
        discount = total - final
        calc.components_total = to_money(total)
        calc.final_price = to_money(final)
        calc.discount = to_money(discount)
        calc.discount_percent = to_money(discount / total * 100) if total > 0 else to_money(0)
        return calc

    def calculate_price_value(self, bundle: Bundle, price_book: PriceBook) -> Optional[Decimal]:
        calc = self.calculate_price(bundle, price_book)
        return calc.final_price if calc.is_success() else None

    def components_summary(self, bundle: Bundle, price_book: Optional[PriceBook] = None) -> list[dict]:
        rows = []
        for component in bundle.components:
            item = self.store.items.get(component.item_id)
            entry = price_book.entry_for(component.item_id) if price_book is not None else None
            rows.append({
                'component_id': component.id,
                'sku_code': item.sku_code if item else None,
                'product_name': item.product_name if item else None,
                'quantity': component.quantity,
                'has_allocation': self.has_active_allocation(component),
                'unit_price': entry.base_price if entry else None,
                'line_total': to_money(entry.base_price * component.quantity) if entry else None,
            })
        return rows

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def has_active_allocation(self, component: BundleComponent) -> bool:
        item = self.store.items.get(component.item_id)
        if item is None:
            return False
        return any(a.status == AllocationStatus.ACTIVE for a in self.store.allocations_for_item(item))

    def validate_components(self, bundle: Bundle) -> ComponentValidation:
        result = ComponentValidation()
        if not bundle.has_components():
            result.errors['bundle'] = ["Bundle must have at least one component"]
            return result

        for component in bundle.components:
            errs = []
            item = self.store.items.get(component.item_id)
            if component.quantity <= 0:
                errs.append("Quantity must be greater than zero")
            if item is None:
                errs.append(f"Item '{component.item_id}' does not exist")
            else:
                if not item.is_active:
                    errs.append(f"SKU '{item.sku_code}' is not active")
                if not self.has_active_allocation(component):
                    errs.append(f"SKU '{item.sku_code}' does not have an active allocation")
            if errs:
                result.errors[component.id] = errs
        return result

    def can_activate(self, bundle: Bundle) -> bool:
        return bundle.is_draft() and bundle.has_components() and self.validate_components(bundle).valid

    def can_deactivate(self, bundle: Bundle) -> bool:
        return bundle.is_active()

    def can_reactivate(self, bundle: Bundle) -> bool:
        return bundle.is_inactive() and self.validate_components(bundle).valid

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def activate(self, bundle: Bundle) -> Bundle:
        if not bundle.is_draft():
            raise InvalidTransitionError(
                "Cannot activate Bundle",
                [f"current status '{bundle.status.label}' is not Draft"],
            )
        validation = self.validate_components(bundle)
        if not validation.valid:
            raise InvalidTransitionError("Cannot activate Bundle", validation.messages())
        return self._transition(bundle, BundleStatus.ACTIVE)

    def deactivate(self, bundle: Bundle) -> Bundle:
        if not bundle.is_active():
            raise InvalidTransitionError(
                "Cannot deactivate Bundle",
                [f"current status '{bundle.status.label}' is not Active"],
            )
        return self._transition(bundle, BundleStatus.INACTIVE)

    def reactivate(self, bundle: Bundle) -> Bundle:
        if not bundle.is_inactive():
            raise InvalidTransitionError(
                "Cannot reactivate Bundle",
                [f"current status '{bundle.status.label}' is not Inactive"],
            )
        validation = self.validate_components(bundle)
        if not validation.valid:
            raise InvalidTransitionError("Cannot reactivate Bundle", validation.messages())
        return self._transition(bundle, BundleStatus.ACTIVE)

    def _transition(self, bundle: Bundle, new_status: BundleStatus) -> Bundle:
        old_status = bundle.status
        bundle.status = new_status
        logger.info(f"Bundle {bundle.id}: {old_status.value} -> {new_status.value}")
        self.audit.record('Bundle', bundle.id, old_status.value, new_status.value)
        return bundle
