"""
Shared service context for the API.

One store and one set of services per process, built lazily from the
fixture files. Routes receive it through the ``get_context`` dependency so
tests can override it with their own store.
"""
from dataclasses import dataclass, field
from typing import Optional

from ..config.log import get_logger
from ..data.load_fixtures import load_fixtures
from ..engine.audit import AuditSink, LoggingAuditSink
from ..engine.simulation import SimulationPipeline
from ..engine.store import CommercialStore
from ..policy.pricing_policy_engine import PricingPolicyEngine
from ..policy.scheduler import PolicyScheduler
from ..services.bundle_service import BundleService
from ..services.discount_rule_service import DiscountRuleService
from ..services.offer_service import OfferService
from ..services.price_book_service import PriceBookService

logger = get_logger(__name__)


@dataclass
class CommercialContext:
    store: CommercialStore
    audit: AuditSink
    price_books: PriceBookService
    offers: OfferService
    discount_rules: DiscountRuleService
    bundles: BundleService
    policies: PricingPolicyEngine
    scheduler: PolicyScheduler
    simulation: SimulationPipeline
    report: dict = field(default_factory=dict)

    @classmethod
    def from_store(
        cls,
        store: CommercialStore,
        audit: Optional[AuditSink] = None,
        report: Optional[dict] = None,
    ) -> 'CommercialContext':
        audit = audit or LoggingAuditSink()
        price_books = PriceBookService(store, audit)
        offers = OfferService(store, audit)
        policies = PricingPolicyEngine(store, audit)
        return cls(
            store=store,
            audit=audit,
            price_books=price_books,
            offers=offers,
            discount_rules=DiscountRuleService(store, audit),
            bundles=BundleService(store, audit),
            policies=policies,
            scheduler=PolicyScheduler(policies, offers),
            simulation=SimulationPipeline(store, price_books, offers),
            report=report or {},
        )


_context: Optional[CommercialContext] = None


def get_context() -> CommercialContext:
    """Process-wide context, loaded from fixtures on first use."""
    global _context
    if _context is None:
        store, report = load_fixtures()
        if report["status"] != "success":
            logger.error(f"Fixture load finished with {len(report['errors'])} error(s)")
        _context = CommercialContext.from_store(store, report=report)
    return _context
