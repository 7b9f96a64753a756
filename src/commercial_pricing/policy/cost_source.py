"""
Cost sources for cost-plus-margin pricing.
"""
from decimal import Decimal
from typing import Optional, Protocol

from ..engine.models import SellableItem
from ..engine.store import CommercialStore


class CostSource(Protocol):
    def cost_for(self, item: SellableItem, source: str = 'product_catalog') -> Optional[Decimal]:
        ...


class CatalogCostSource:
    """
    Item unit cost, falling back to a fixed share of the latest market price.

    Returns None when neither is known, so the item is skipped.
    """

    def __init__(self, store: CommercialStore, fallback_ratio: Decimal = Decimal('0.6')):
        self.store = store
        self.fallback_ratio = fallback_ratio

    def cost_for(self, item: SellableItem, source: str = 'product_catalog') -> Optional[Decimal]:
        if item.unit_cost is not None:
            return item.unit_cost
        emp = self.store.latest_market_price(item.id)
        if emp is None:
            return None
        return emp.value * self.fallback_ratio


class InMemoryCostSource:
    """Fixed costs keyed by item id."""

    def __init__(self, costs: Optional[dict[str, Decimal]] = None):
        self._costs = dict(costs or {})

    def cost_for(self, item: SellableItem, source: str = 'product_catalog') -> Optional[Decimal]:
        return self._costs.get(item.id)
