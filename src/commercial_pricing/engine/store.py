"""
Commercial Store - in-memory repository for all pricing records.

Collections are plain dicts keyed by id (executions are an append-only
list). Writers go through ``transaction()``, which serializes them with a
re-entrant lock and restores every collection and record in place if the
block raises. Reads do not take the lock.
"""
import copy
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from ..exceptions import RecordNotFoundError
from .models import (
    Allocation,
    AllocationConstraint,
    Approver,
    Bundle,
    Channel,
    DiscountRule,
    MarketPriceReference,
    Offer,
    PolicyExecution,
    PriceBook,
    PricingPolicy,
    SellableItem,
)
from .money import to_utc

EPOCH = datetime.min.replace(tzinfo=timezone.utc)

COLLECTIONS = (
    'items',
    'channels',
    'market_prices',
    'allocations',
    'constraints',
    'approvers',
    'price_books',
    'discount_rules',
    'offers',
    'bundles',
    'policies',
)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class CommercialStore:
    """Holds every record the pricing services read and write."""

    def __init__(self):
        self.items: dict[str, SellableItem] = {}
        self.channels: dict[str, Channel] = {}
        self.market_prices: dict[str, MarketPriceReference] = {}
        self.allocations: dict[str, Allocation] = {}
        self.constraints: dict[str, AllocationConstraint] = {}
        self.approvers: dict[str, Approver] = {}
        self.price_books: dict[str, PriceBook] = {}
        self.discount_rules: dict[str, DiscountRule] = {}
        self.offers: dict[str, Offer] = {}
        self.bundles: dict[str, Bundle] = {}
        self.policies: dict[str, PricingPolicy] = {}
        self.executions: list[PolicyExecution] = []

        self._lock = threading.RLock()
        self._depth = 0

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator['CommercialStore']:
        """
        Run a block of writes atomically.

        Nested calls join the outer transaction; only the outermost one
        takes a snapshot and rolls back.
        """
        with self._lock:
            outermost = self._depth == 0
            snapshot = self._snapshot() if outermost else None
            self._depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    self._restore(snapshot)
                raise
            finally:
                self._depth -= 1

    def _snapshot(self) -> dict:
        collections = {}
        records = []
        for name in COLLECTIONS:
            collection = getattr(self, name)
            collections[name] = dict(collection)
            for record in collection.values():
                records.append((record, copy.deepcopy(vars(record))))
        return {
            'collections': collections,
            'records': records,
            'executions': list(self.executions),
        }

    def _restore(self, snapshot: dict):
        for record, state in snapshot['records']:
            vars(record).clear()
            vars(record).update(state)
        for name, saved in snapshot['collections'].items():
            collection = getattr(self, name)
            collection.clear()
            collection.update(saved)
        self.executions[:] = snapshot['executions']

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require(self, collection: dict, kind: str, record_id: str):
        record = collection.get(record_id)
        if record is None:
            raise RecordNotFoundError(kind, record_id)
        return record

    def get_item(self, item_id: str) -> SellableItem:
        return self._require(self.items, 'SellableItem', item_id)

    def get_channel(self, channel_id: str) -> Channel:
        return self._require(self.channels, 'Channel', channel_id)

    def get_price_book(self, price_book_id: str) -> PriceBook:
        return self._require(self.price_books, 'PriceBook', price_book_id)

    def get_offer(self, offer_id: str) -> Offer:
        return self._require(self.offers, 'Offer', offer_id)

    def get_discount_rule(self, rule_id: str) -> DiscountRule:
        return self._require(self.discount_rules, 'DiscountRule', rule_id)

    def get_bundle(self, bundle_id: str) -> Bundle:
        return self._require(self.bundles, 'Bundle', bundle_id)

    def get_policy(self, policy_id: str) -> PricingPolicy:
        return self._require(self.policies, 'PricingPolicy', policy_id)

    def get_approver(self, approver_id: str) -> Approver:
        return self._require(self.approvers, 'Approver', approver_id)

    def get_constraint(self, constraint_id: str) -> AllocationConstraint:
        return self._require(self.constraints, 'AllocationConstraint', constraint_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def active_items(self) -> list[SellableItem]:
        return [item for item in self.items.values() if item.is_active]

    def latest_market_price(
        self,
        item_id: str,
        market: Optional[str] = None,
    ) -> Optional[MarketPriceReference]:
        """Most recently fetched EMP for an item, optionally for one market."""
        candidates = [
            emp for emp in self.market_prices.values()
            if emp.item_id == item_id and (market is None or emp.market == market)
        ]
        if not candidates:
            return None
        # Undated references sort before any dated one
        return max(
            candidates,
            key=lambda emp: to_utc(emp.fetched_at) if emp.fetched_at else EPOCH,
        )

    def allocations_for_item(self, item: SellableItem) -> list[Allocation]:
        return [a for a in self.allocations.values() if a.covers(item)]

    def offers_for_rule(self, rule_id: str) -> list[Offer]:
        return [
            offer for offer in self.offers.values()
            if offer.benefit is not None and offer.benefit.discount_rule_id == rule_id
        ]

    def executions_for(self, policy_id: str) -> list[PolicyExecution]:
        return [e for e in self.executions if e.policy_id == policy_id]
