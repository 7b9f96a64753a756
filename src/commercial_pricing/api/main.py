"""
Pricing API - HTTP surface over the commercial pricing services.

Domain errors map to HTTP status codes:
- InvalidTransitionError / LogicDefinitionError -> 400
- RecordNotFoundError -> 404
"""
from contextlib import contextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config.log import get_logger
from ..engine.simulation import SimulationResult
from ..exceptions import InvalidTransitionError, LogicDefinitionError, RecordNotFoundError
from ..policy.pricing_policy_engine import ExecutionResult
from .schemas import (
    ActivatePriceBookRequest,
    BundlePriceOut,
    ExecutionOut,
    OfferResolveRequest,
    PolicyRunRequest,
    PriceBookOut,
    PriceResolutionOut,
    SimulationOut,
    SimulationRequest,
    StepOut,
)
from .state import CommercialContext, get_context

logger = get_logger(__name__)

app = FastAPI(
    title="Commercial Pricing API",
    description="Sellability and price resolution for SKUs across channels",
    version=__version__,
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@contextmanager
def domain_errors():
    """Translate domain exceptions raised inside a route into HTTP errors."""
    try:
        yield
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "reasons": e.reasons})
    except LogicDefinitionError as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "reasons": e.errors})


def _simulation_out(result: SimulationResult) -> SimulationOut:
    ctx = result.context
    return SimulationOut(
        item_id=ctx.item.id,
        sku_code=ctx.item.sku_code,
        channel_id=ctx.channel.id,
        at=ctx.at,
        quantity=ctx.quantity,
        is_sellable=result.is_sellable,
        base_price=result.price_book.base_price,
        discount_amount=result.offer.discount_amount,
        final_price=result.final_price.final_price,
        total_price=result.final_price.total_price,
        currency=result.final_price.currency,
        offer_id=result.offer.offer.id if result.offer.offer else None,
        price_book_id=result.price_book.price_book.id if result.price_book.price_book else None,
        steps=[
            StepOut(
                name=step.name,
                status=step.status.value,
                message=step.message,
                rationale=step.rationale,
                details=step.details,
            )
            for step in result.steps
        ],
        errors=result.errors,
        warnings=result.warnings,
        trace=result.get_trace_text(),
    )


def _execution_out(result: ExecutionResult) -> ExecutionOut:
    return ExecutionOut(
        policy_id=result.policy.id,
        execution_id=result.execution.id if result.execution else None,
        execution_type=result.execution_type.value,
        status=result.status.value,
        skus_processed=result.skus_processed,
        prices_generated=result.prices_generated,
        errors_count=result.errors_count,
        log_summary=result.log_summary,
        changes=result.price_changes(),
        errors=[{'item_id': e.item_id, 'sku_code': e.sku_code, 'error': e.error} for e in result.errors],
    )


@app.get("/")
async def root():
    return {"status": "online", "message": "Commercial Pricing API Active"}


@app.get("/system/status")
async def get_status(ctx: CommercialContext = Depends(get_context)):
    store = ctx.store
    return {
        "engine_active": True,
        "fixtures_status": ctx.report.get("status"),
        "fixtures_warnings": len(ctx.report.get("warnings", [])),
        "items": len(store.items),
        "price_books": len(store.price_books),
        "offers": len(store.offers),
        "policies": len(store.policies),
        "executions": len(store.executions),
    }


@app.post("/simulate", response_model=SimulationOut)
async def simulate(req: SimulationRequest, ctx: CommercialContext = Depends(get_context)):
    with domain_errors():
        result = ctx.simulation.run(
            req.item_id,
            req.channel_id,
            at=req.at,
            quantity=req.quantity,
            customer=req.customer.to_context() if req.customer else None,
        )
    return _simulation_out(result)


@app.get("/offers/{offer_id}/price", response_model=PriceResolutionOut)
async def get_offer_price(offer_id: str, quantity: int = 1, ctx: CommercialContext = Depends(get_context)):
    if quantity < 1:
        raise HTTPException(status_code=400, detail="quantity must be at least 1")
    with domain_errors():
        offer = ctx.store.get_offer(offer_id)
    resolution = ctx.offers.resolve_price(offer, quantity)
    return PriceResolutionOut(
        offer_id=offer.id,
        base_price=resolution.base_price,
        final_price=resolution.final_price,
        discount=resolution.discount,
        discount_percent=resolution.discount_percent,
        error=resolution.error,
    )


@app.post("/offers/resolve")
async def resolve_offer(req: OfferResolveRequest, ctx: CommercialContext = Depends(get_context)):
    with domain_errors():
        ctx.store.get_item(req.item_id)
        ctx.store.get_channel(req.channel_id)
    offer = ctx.offers.resolve_active_for_context(
        req.item_id,
        req.channel_id,
        req.customer.to_context() if req.customer else None,
        req.at,
    )
    if offer is None:
        return {"offer_id": None, "name": None, "benefit": None}
    book = ctx.store.price_books.get(offer.price_book_id)
    return {
        "offer_id": offer.id,
        "name": offer.name,
        "benefit": offer.benefit.summary(book.currency if book else 'EUR') if offer.benefit else None,
    }


@app.post("/policies/{policy_id}/execute", response_model=ExecutionOut)
async def execute_policy(
    policy_id: str,
    req: Optional[PolicyRunRequest] = None,
    ctx: CommercialContext = Depends(get_context),
):
    with domain_errors():
        policy = ctx.store.get_policy(policy_id)
        result = ctx.policies.execute(policy, at=req.at if req else None)
    return _execution_out(result)


@app.post("/policies/{policy_id}/dry-run", response_model=ExecutionOut)
async def dry_run_policy(
    policy_id: str,
    req: Optional[PolicyRunRequest] = None,
    ctx: CommercialContext = Depends(get_context),
):
    with domain_errors():
        policy = ctx.store.get_policy(policy_id)
        result = ctx.policies.dry_run(policy, at=req.at if req else None)
    return _execution_out(result)


@app.get("/bundles/{bundle_id}/price", response_model=BundlePriceOut)
async def get_bundle_price(
    bundle_id: str,
    price_book_id: Optional[str] = None,
    channel_id: Optional[str] = None,
    ctx: CommercialContext = Depends(get_context),
):
    with domain_errors():
        bundle = ctx.store.get_bundle(bundle_id)
        if price_book_id:
            book = ctx.store.get_price_book(price_book_id)
        elif channel_id:
            ctx.store.get_channel(channel_id)
            book = ctx.price_books.resolve_for_channel(channel_id)
        else:
            raise HTTPException(status_code=400, detail="price_book_id or channel_id is required")
    if book is None:
        raise HTTPException(status_code=404, detail=f"No active Price Book for channel '{channel_id}'")

    calc = ctx.bundles.calculate_price(bundle, book)
    return BundlePriceOut(
        bundle_id=bundle.id,
        price_book_id=book.id,
        pricing_logic=calc.pricing_logic.value,
        currency=calc.currency,
        components_total=calc.components_total,
        final_price=calc.final_price,
        discount=calc.discount,
        discount_percent=calc.discount_percent,
        missing_items=calc.missing_items,
        error=calc.error,
    )


@app.post("/price-books/{price_book_id}/activate", response_model=PriceBookOut)
async def activate_price_book(
    price_book_id: str,
    req: ActivatePriceBookRequest,
    ctx: CommercialContext = Depends(get_context),
):
    with domain_errors():
        book = ctx.store.get_price_book(price_book_id)
        approver = ctx.store.get_approver(req.approver_id)
        ctx.price_books.activate(book, approver)
    return PriceBookOut(
        id=book.id,
        name=book.name,
        market=book.market,
        channel_id=book.channel_id,
        currency=book.currency,
        status=book.status.value,
        valid_from=book.valid_from.isoformat(),
        valid_to=book.valid_to.isoformat() if book.valid_to else None,
        approved_by=book.approved_by,
        entries=len(book.entries),
    )
