"""
Allocation constraint capability.

Offer activation asks an ``AllocationConstraintChecker`` whether the
audience an Offer targets is inside what the upstream allocation allows.
The store-backed checker reads constraints from the CommercialStore.
"""
from typing import Iterable, Optional, Protocol

from .models import AllocationConstraint, Channel, Eligibility


class AllocationConstraintChecker(Protocol):
    def get_constraint(self, constraint_id: str) -> Optional[AllocationConstraint]:
        ...

    def is_market_allowed(self, constraint_id: str, market: str) -> bool:
        ...

    def is_customer_type_allowed(self, constraint_id: str, customer_type: str) -> bool:
        ...

    def is_channel_allowed(self, constraint_id: str, channel: Channel) -> bool:
        ...


class InMemoryAllocationChecker:
    """Checker over a fixed set of constraints."""

    def __init__(self, constraints: Optional[Iterable[AllocationConstraint]] = None):
        self._constraints: dict[str, AllocationConstraint] = {}
        for constraint in constraints or ():
            if constraint.id in self._constraints:
                raise ValueError(f"Duplicate constraint id '{constraint.id}'.")
            self._constraints[constraint.id] = constraint

    def get_constraint(self, constraint_id: str) -> Optional[AllocationConstraint]:
        return self._constraints.get(constraint_id)

    # Unknown constraints restrict nothing here; activation reports them separately
    def is_market_allowed(self, constraint_id: str, market: str) -> bool:
        constraint = self.get_constraint(constraint_id)
        return constraint is None or constraint.is_market_allowed(market)

    def is_customer_type_allowed(self, constraint_id: str, customer_type: str) -> bool:
        constraint = self.get_constraint(constraint_id)
        return constraint is None or constraint.is_customer_type_allowed(customer_type)

    def is_channel_allowed(self, constraint_id: str, channel: Channel) -> bool:
        constraint = self.get_constraint(constraint_id)
        return constraint is None or constraint.is_channel_allowed(channel)


class StoreAllocationChecker(InMemoryAllocationChecker):
    """Checker that always sees the store's current constraints."""

    def __init__(self, store):
        self._store = store

    def get_constraint(self, constraint_id: str) -> Optional[AllocationConstraint]:
        return self._store.constraints.get(constraint_id)


def eligibility_violations(
    checker: AllocationConstraintChecker,
    eligibility: Optional[Eligibility],
    channel: Optional[Channel],
) -> list[str]:
    """
    Reasons an Offer's audience falls outside its allocation constraint.

    Returns an empty list when there is no eligibility or no linked constraint.
    """
    if eligibility is None or eligibility.allocation_constraint_id is None:
        return []

    constraint_id = eligibility.allocation_constraint_id
    if checker.get_constraint(constraint_id) is None:
        return [f"Allocation constraint '{constraint_id}' not found"]

    errors = []
    for market in eligibility.allowed_markets:
        if not checker.is_market_allowed(constraint_id, market):
            errors.append(f"Market '{market}' is not allowed by the allocation constraint")
            break
    for customer_type in eligibility.allowed_customer_types:
        if not checker.is_customer_type_allowed(constraint_id, customer_type):
            errors.append(f"Customer type '{customer_type}' is not allowed by the allocation constraint")
            break
    if channel is not None and not checker.is_channel_allowed(constraint_id, channel):
        errors.append(f"Channel '{channel.id}' is not allowed by the allocation constraint")
    return errors
