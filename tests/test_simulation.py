"""
End-to-end simulation against the fixture store.

Fixture notes:
- itm-001 (Margaux 75cl) is fully sellable on the web shop with 10% off
- itm-002 (Magnum) is sold out and its only offer ended in March
- itm-005 (Syrah) has no allocation and no offer
"""
from decimal import Decimal

import pytest

from commercial_pricing.engine.enums import StepStatus
from commercial_pricing.engine.models import CustomerContext
from commercial_pricing.engine.simulation import SimulationPipeline
from commercial_pricing.exceptions import RecordNotFoundError
from commercial_pricing.services.offer_service import OfferService
from commercial_pricing.services.price_book_service import PriceBookService


@pytest.fixture
def pipeline(store, audit):
    return SimulationPipeline(store, PriceBookService(store, audit), OfferService(store, audit))


def statuses(result):
    return [step.status for step in result.steps]


def test_sellable_item(pipeline, at):
    result = pipeline.run('itm-001', 'ch-web', at=at)

    assert result.is_sellable
    assert result.errors == []
    assert result.warnings == []
    assert statuses(result) == [StepStatus.SUCCESS] * 5
    assert result.price_book.price_book.id == 'pb-fr-web'
    assert result.price_book.base_price == Decimal('100.00')
    assert result.offer.offer.id == 'of-001'
    assert result.offer.discount_amount == Decimal('10.00')
    assert result.final_price.final_price == Decimal('90.00')
    assert result.final_price.total_price == Decimal('90.00')
    assert result.final_price.currency == 'EUR'
    assert result.market_price.details['freshness'] == 'fresh'


def test_quantity_multiplies_total(pipeline, at):
    result = pipeline.run('itm-001', 'ch-web', at=at, quantity=2)
    assert result.final_price.final_price == Decimal('90.00')
    assert result.final_price.total_price == Decimal('180.00')


def test_volume_rule_uses_quantity(pipeline, at):
    result = pipeline.run('itm-004', 'ch-web', at=at, quantity=6)

    assert result.is_sellable
    assert result.offer.discount_amount == Decimal('2.00')
    assert result.final_price.final_price == Decimal('28.00')
    assert result.final_price.total_price == Decimal('168.00')
    assert result.market_price.details['freshness'] == 'recent'


def test_no_allocation_is_not_sellable(pipeline, at):
    result = pipeline.run('itm-005', 'ch-web', at=at)

    assert result.allocation_check.status == StepStatus.ERROR
    assert result.final_price.status == StepStatus.ERROR
    assert not result.is_sellable
    assert result.errors == [
        "Allocation: No active allocation found for this SKU",
        "Final Price: Cannot calculate final price: no active Offer found",
    ]
    assert "EMP: No EMP data available for this SKU" in result.warnings
    assert "Offer: No active Offer found for this SKU on this Channel" in result.warnings


def test_sold_out_allocation_is_a_warning(pipeline, at):
    result = pipeline.run('itm-002', 'ch-web', at=at)

    assert result.allocation_check.status == StepStatus.WARNING
    assert result.allocation_check.remaining == 0
    assert "Insufficient allocation" in result.allocation_check.message


def test_channel_outside_constraint_is_a_warning(pipeline, at):
    result = pipeline.run('itm-001', 'ch-uk', at=at)

    assert result.allocation_check.status == StepStatus.WARNING
    assert result.allocation_check.message == "Channel not in allowed channels for this allocation"
    # The channel-agnostic default book still applies
    assert result.price_book.price_book.id == 'pb-fr-default'
    assert result.offer.status == StepStatus.WARNING
    assert not result.is_sellable


def test_channel_type_satisfies_constraint(pipeline, at):
    result = pipeline.run('itm-003', 'ch-trade', at=at)

    assert result.allocation_check.status == StepStatus.SUCCESS
    assert result.market_price.status == StepStatus.WARNING
    assert result.market_price.details['freshness'] == 'stale'
    assert result.price_book.base_price == Decimal('48.00')


def test_missing_price_book(pipeline, store, at):
    for book in store.price_books.values():
        book.channel_id = 'ch-elsewhere'

    result = pipeline.run('itm-001', 'ch-web', at=at)

    assert result.price_book.status == StepStatus.ERROR
    assert result.offer.status == StepStatus.ERROR
    assert result.final_price.status == StepStatus.ERROR
    assert result.errors[0] == "Price Book: No active Price Book found for this context"


def test_missing_entry_is_a_warning(pipeline, store, at):
    del store.get_price_book('pb-fr-web').entries['itm-001']
    result = pipeline.run('itm-001', 'ch-web', at=at)
    assert result.price_book.status == StepStatus.WARNING
    assert result.offer.status == StepStatus.ERROR


def test_customer_context_selects_eligible_offer(pipeline, store, at):
    store.get_offer('of-001').valid_to = at.replace(month=5)
    result = pipeline.run('itm-001', 'ch-web', at=at, customer=CustomerContext(membership_tier='gold'))

    assert result.offer.offer.id == 'of-002'
    assert result.final_price.final_price == Decimal('85.00')

    result = pipeline.run('itm-001', 'ch-web', at=at, customer=CustomerContext(membership_tier='silver'))
    assert result.offer.offer is None


def test_trace_text(pipeline, at):
    text = pipeline.run('itm-001', 'ch-web', at=at).get_trace_text()
    lines = text.splitlines()
    assert len(lines) == 5
    assert lines[0] == "• Allocation: Allocation available with sufficient quantity = 100 remaining"
    assert lines[-1] == "• Final Price: Final price calculated successfully = EUR 90.00"


def test_unknown_records_raise(pipeline, at):
    with pytest.raises(RecordNotFoundError):
        pipeline.run('itm-404', 'ch-web', at=at)
    with pytest.raises(ValueError):
        pipeline.run('itm-001', 'ch-web', at=at, quantity=0)
