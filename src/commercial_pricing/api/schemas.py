"""Request and response models for the pricing API."""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ..engine.models import CustomerContext


class CustomerIn(BaseModel):
    market: Optional[str] = None
    customer_type: Optional[str] = None
    membership_tier: Optional[str] = None
    customer_id: Optional[str] = None

    def to_context(self) -> CustomerContext:
        return CustomerContext(**self.model_dump())


class SimulationRequest(BaseModel):
    item_id: str
    channel_id: str
    quantity: int = Field(default=1, ge=1)
    at: Optional[datetime] = None
    customer: Optional[CustomerIn] = None


class OfferResolveRequest(BaseModel):
    item_id: str
    channel_id: str
    at: Optional[datetime] = None
    customer: Optional[CustomerIn] = None


class PolicyRunRequest(BaseModel):
    at: Optional[datetime] = None


class ActivatePriceBookRequest(BaseModel):
    approver_id: str


class StepOut(BaseModel):
    name: str
    status: str
    message: str
    rationale: Optional[str] = None
    details: dict = Field(default_factory=dict)


class SimulationOut(BaseModel):
    item_id: str
    sku_code: str
    channel_id: str
    at: datetime
    quantity: int
    is_sellable: bool
    base_price: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    final_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    currency: Optional[str] = None
    offer_id: Optional[str] = None
    price_book_id: Optional[str] = None
    steps: list[StepOut]
    errors: list[str]
    warnings: list[str]
    trace: str


class PriceResolutionOut(BaseModel):
    offer_id: str
    base_price: Optional[Decimal] = None
    final_price: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    error: Optional[str] = None


class PriceChangeOut(BaseModel):
    item_id: str
    sku_code: str
    current_price: Optional[Decimal] = None
    new_price: Decimal
    change: Optional[Decimal] = None
    change_percent: Optional[Decimal] = None


class ExecutionOut(BaseModel):
    policy_id: str
    execution_id: Optional[str] = None
    execution_type: str
    status: str
    skus_processed: int
    prices_generated: int
    errors_count: int
    log_summary: str
    changes: list[PriceChangeOut]
    errors: list[dict]


class BundlePriceOut(BaseModel):
    bundle_id: str
    price_book_id: str
    pricing_logic: str
    currency: str
    components_total: Optional[Decimal] = None
    final_price: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    missing_items: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class PriceBookOut(BaseModel):
    id: str
    name: str
    market: str
    channel_id: Optional[str] = None
    currency: str
    status: str
    valid_from: str
    valid_to: Optional[str] = None
    approved_by: Optional[str] = None
    entries: int
