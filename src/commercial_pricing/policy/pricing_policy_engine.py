"""
Pricing Policy Engine - generates base prices into Price Books.

A policy resolves its scope to items, computes a price per item with its
strategy (cost plus margin, reference book, market index, adjustment or
rounding) and writes the results into its target Price Book. Every run,
dry runs included, leaves an immutable PolicyExecution record.

Per item, a strategy either returns a price, returns None (skip: nothing
to price from) or raises (error). Skips are neither errors nor successes.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from functools import singledispatchmethod
from typing import Optional

import pandas as pd

from ..config.log import get_logger
from ..config.settings import get_settings
from ..engine.audit import AuditSink, InMemoryAuditSink
from ..engine.enums import (
    ExecutionStatus,
    ExecutionType,
    PriceBookStatus,
    PriceSource,
    PricingPolicyStatus,
)
from ..engine.logic import (
    CostPlusMarginLogic,
    FixedAdjustmentLogic,
    IndexBasedLogic,
    ReferencePriceBookLogic,
    RoundingLogic,
)
from ..engine.models import PolicyExecution, PriceBook, PriceBookEntry, PricingPolicy, SellableItem
from ..engine.money import to_money, to_utc, utcnow
from ..engine.rounding import apply_rounding
from ..engine.store import CommercialStore, new_id
from ..exceptions import InvalidTransitionError
from .cost_source import CatalogCostSource, CostSource
from .scope_resolver import ScopeResolver

logger = get_logger(__name__)


@dataclass
class PriceChange:
    """One generated price, with the target book's price before the run."""
    item_id: str
    sku_code: str
    new_price: Decimal
    current_price: Optional[Decimal] = None

    @property
    def change(self) -> Optional[Decimal]:
        if self.current_price is None:
            return None
        return self.new_price - self.current_price

    @property
    def change_percent(self) -> Optional[Decimal]:
        if self.current_price is None or self.current_price <= 0:
            return None
        return to_money((self.new_price - self.current_price) / self.current_price * 100)


@dataclass
class ItemError:
    item_id: str
    sku_code: str
    error: str


@dataclass
class ExecutionResult:
    """Outcome of one policy run."""
    policy: PricingPolicy
    execution_type: ExecutionType
    status: ExecutionStatus
    skus_processed: int
    prices_generated: int
    errors_count: int
    changes: list[PriceChange] = field(default_factory=list)
    errors: list[ItemError] = field(default_factory=list)
    log_summary: str = ''
    execution: Optional[PolicyExecution] = None

    def is_success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    def is_partial(self) -> bool:
        return self.status == ExecutionStatus.PARTIAL

    def is_failed(self) -> bool:
        return self.status == ExecutionStatus.FAILED

    def is_dry_run(self) -> bool:
        return self.execution_type == ExecutionType.DRY_RUN

    def has_errors(self) -> bool:
        return self.errors_count > 0

    def price_changes(self) -> list[dict]:
        return [
            {
                'item_id': c.item_id,
                'sku_code': c.sku_code,
                'current_price': c.current_price,
                'new_price': c.new_price,
                'change': c.change,
                'change_percent': c.change_percent,
            }
            for c in self.changes
        ]

    def changes_frame(self) -> pd.DataFrame:
        """Price change preview as a DataFrame (one row per generated price)."""
        columns = ['item_id', 'sku_code', 'current_price', 'new_price', 'change', 'change_percent']
        return pd.DataFrame(self.price_changes(), columns=columns)


def execution_status(processed: int, generated: int, errors: int) -> ExecutionStatus:
    if processed == 0:
        return ExecutionStatus.SUCCESS
    if generated == 0:
        return ExecutionStatus.FAILED
    if errors > 0:
        return ExecutionStatus.PARTIAL
    return ExecutionStatus.SUCCESS


def log_summary(processed: int, generated: int, errors: int, dry_run: bool) -> str:
    kind = "Dry run" if dry_run else "Execution"
    if processed == 0:
        return f"{kind} completed: No SKUs matched the policy scope."
    if errors == 0 and generated > 0:
        return f"{kind} completed successfully: {generated} prices generated from {processed} SKUs."
    if errors > 0 and generated > 0:
        return f"{kind} completed with warnings: {generated} prices generated, {errors} errors from {processed} SKUs."
    return f"{kind} completed: No prices could be generated from {processed} SKUs. {errors} errors."


class PricingPolicyEngine:
    """Lifecycle and execution of pricing policies."""

    def __init__(
        self,
        store: CommercialStore,
        audit: Optional[AuditSink] = None,
        cost_source: Optional[CostSource] = None,
    ):
        self.store = store
        self.audit = audit or InMemoryAuditSink()
        self.cost_source = cost_source or CatalogCostSource(store, get_settings().cost_fallback_ratio)
        self.scope_resolver = ScopeResolver(store)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def activate(self, policy: PricingPolicy) -> PricingPolicy:
        return self._transition(policy, (PricingPolicyStatus.DRAFT,), PricingPolicyStatus.ACTIVE, 'activate')

    def pause(self, policy: PricingPolicy) -> PricingPolicy:
        return self._transition(policy, (PricingPolicyStatus.ACTIVE,), PricingPolicyStatus.PAUSED, 'pause')

    def resume(self, policy: PricingPolicy) -> PricingPolicy:
        return self._transition(policy, (PricingPolicyStatus.PAUSED,), PricingPolicyStatus.ACTIVE, 'resume')

    def archive(self, policy: PricingPolicy) -> PricingPolicy:
        return self._transition(
            policy,
            (PricingPolicyStatus.ACTIVE, PricingPolicyStatus.PAUSED),
            PricingPolicyStatus.ARCHIVED,
            'archive',
        )

    def _transition(self, policy, allowed, new_status, verb) -> PricingPolicy:
        if policy.status not in allowed:
            expected = " or ".join(s.label for s in allowed)
            raise InvalidTransitionError(
                f"Cannot {verb} PricingPolicy",
                [f"current status '{policy.status.label}' is not {expected}"],
            )
        old_status = policy.status
        policy.status = new_status
        logger.info(f"PricingPolicy {policy.id}: {old_status.value} -> {new_status.value}")
        self.audit.record('PricingPolicy', policy.id, old_status.value, new_status.value)
        return policy

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def dry_run(self, policy: PricingPolicy, at: Optional[datetime] = None) -> ExecutionResult:
        return self.execute(policy, dry_run=True, at=at)

    def execute(
        self,
        policy: PricingPolicy,
        dry_run: bool = False,
        execution_type: Optional[ExecutionType] = None,
        at: Optional[datetime] = None,
    ) -> ExecutionResult:
        """
        Run a policy.

        Args:
            policy: Policy to run
            dry_run: Compute prices without writing them
            execution_type: Recorded type for real runs (Manual by default,
                the scheduler passes Scheduled)
            at: Execution instant (defaults to now)

        Raises:
            InvalidTransitionError: policy status does not allow the run, or
                the target Price Book is missing, Expired or Archived
        """
        at = to_utc(at) if at is not None else utcnow()
        if dry_run:
            execution_type = ExecutionType.DRY_RUN
        elif execution_type is None:
            execution_type = ExecutionType.MANUAL

        target = self._check_can_run(policy, dry_run)
        items = self.scope_resolver.resolve(policy.scope)

        changes, errors = [], []
        for item in items:
            try:
                price = self.calculate_price(policy, item, target)
            except Exception as exc:
                logger.warning(f"Policy {policy.id}: failed to price {item.sku_code}: {exc}")
                errors.append(ItemError(item.id, item.sku_code, str(exc)))
                continue
            if price is None:
                logger.debug(f"Policy {policy.id}: skipped {item.sku_code} (no pricing input)")
                continue
            changes.append(PriceChange(
                item_id=item.id,
                sku_code=item.sku_code,
                new_price=price,
                current_price=target.entries[item.id].base_price if item.id in target.entries else None,
            ))

        processed, generated = len(items), len(changes)
        status = execution_status(processed, generated, len(errors))
        summary = log_summary(processed, generated, len(errors), dry_run)

        with self.store.transaction():
            if not dry_run:
                for change in changes:
                    target.entries[change.item_id] = PriceBookEntry(
                        item_id=change.item_id,
                        base_price=change.new_price,
                        source=PriceSource.POLICY_GENERATED,
                        policy_id=policy.id,
                    )
                policy.last_executed_at = at
            execution = self.record_execution(policy, execution_type, at, processed, generated, len(errors), status, summary)

        logger.info(f"Policy {policy.id} ({execution_type.value}): {summary}")
        return ExecutionResult(
            policy=policy,
            execution_type=execution_type,
            status=status,
            skus_processed=processed,
            prices_generated=generated,
            errors_count=len(errors),
            changes=changes,
            errors=errors,
            log_summary=summary,
            execution=execution,
        )

    def record_execution(
        self,
        policy: PricingPolicy,
        execution_type: ExecutionType,
        at: datetime,
        processed: int,
        generated: int,
        errors: int,
        status: ExecutionStatus,
        summary: str,
    ) -> PolicyExecution:
        """Append an immutable execution record to the store."""
        execution = PolicyExecution(
            id=new_id('exec'),
            policy_id=policy.id,
            executed_at=at,
            execution_type=execution_type,
            skus_processed=processed,
            prices_generated=generated,
            errors_count=errors,
            status=status,
            log_summary=summary,
        )
        with self.store.transaction():
            self.store.executions.append(execution)
        return execution

    def _check_can_run(self, policy: PricingPolicy, dry_run: bool) -> PriceBook:
        reasons = []
        if dry_run and not policy.can_dry_run():
            reasons.append("Archived policies cannot be previewed")
        if not dry_run and not policy.can_be_executed():
            reasons.append(f"status '{policy.status.label}' does not allow execution; only Active policies can be executed")

        target = self.store.price_books.get(policy.target_price_book_id) if policy.target_price_book_id else None
        if target is None:
            reasons.append("no target Price Book is assigned")
        elif target.status in (PriceBookStatus.EXPIRED, PriceBookStatus.ARCHIVED):
            reasons.append(f"target Price Book is {target.status.label}")

        if reasons:
            verb = "dry run" if dry_run else "execute"
            raise InvalidTransitionError(f"Cannot {verb} PricingPolicy", reasons)
        return target

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def calculate_price(self, policy: PricingPolicy, item: SellableItem, target: PriceBook) -> Optional[Decimal]:
        """Price for one item, or None when the strategy has nothing to price from."""
        price = self._calculate(policy.logic, item, target)
        if price is None:
            return None
        price = to_money(apply_rounding(price, policy.logic.rounding))
        if price < 0:
            raise ValueError(f"computed price {price} is negative")
        return price

    @singledispatchmethod
    def _calculate(self, logic, item: SellableItem, target: PriceBook) -> Optional[Decimal]:
        raise TypeError(f"Unsupported policy logic: {type(logic).__name__}")

    @_calculate.register
    def _(self, logic: CostPlusMarginLogic, item: SellableItem, target: PriceBook) -> Optional[Decimal]:
        cost = self.cost_source.cost_for(item, logic.cost_source)
        if cost is None:
            return None
        return cost * (1 + logic.margin_percentage / 100) + logic.markup_value

    @_calculate.register
    def _(self, logic: ReferencePriceBookLogic, item: SellableItem, target: PriceBook) -> Optional[Decimal]:
        source = self.store.price_books.get(logic.source_price_book_id)
        entry = source.entry_for(item.id) if source is not None else None
        if entry is None:
            return None
        return logic.adjustment.apply(entry.base_price)

    @_calculate.register
    def _(self, logic: IndexBasedLogic, item: SellableItem, target: PriceBook) -> Optional[Decimal]:
        emp = self.store.latest_market_price(item.id, logic.market)
        if emp is None:
            return None
        return emp.value * logic.multiplier + logic.fixed_adjustment

    @_calculate.register
    def _(self, logic: FixedAdjustmentLogic, item: SellableItem, target: PriceBook) -> Optional[Decimal]:
        entry = target.entry_for(item.id)
        if entry is None:
            return None
        return logic.adjustment.apply(entry.base_price)

    @_calculate.register
    def _(self, logic: RoundingLogic, item: SellableItem, target: PriceBook) -> Optional[Decimal]:
        entry = target.entry_for(item.id)
        if entry is None:
            return None
        return entry.base_price
