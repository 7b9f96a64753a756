"""
Scope Resolver - Resolves the items a pricing policy applies to.
"""
from typing import Optional

from ..engine.enums import ScopeType
from ..engine.models import PolicyScope, SellableItem
from ..engine.store import CommercialStore


class ScopeResolver:
    """
    Resolves a PolicyScope to active items.

    Scope types:
    1. all: every active item
    2. category / product: active items whose product name contains the reference
    3. sku: comma-separated item ids (active ones only)

    Market and channel lists on the scope are not applied here; Offers
    enforce them at sale time.
    """

    def __init__(self, store: CommercialStore):
        self.store = store

    def resolve(self, scope: Optional[PolicyScope]) -> list[SellableItem]:
        if scope is None:
            return []

        items = self.store.active_items()
        reference = (scope.reference or '').strip()

        if scope.scope_type in (ScopeType.CATEGORY, ScopeType.PRODUCT):
            if reference:
                needle = reference.lower()
                items = [item for item in items if needle in item.product_name.lower()]

        elif scope.scope_type == ScopeType.SKU:
            if reference:
                wanted = {part.strip() for part in reference.split(',') if part.strip()}
                items = [item for item in items if item.id in wanted]

        return items
