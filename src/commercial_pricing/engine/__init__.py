"""Engine subpackage - records, repository and price resolution."""
from .models import CustomerContext, Offer, PriceBook, PricingPolicy, SellableItem
from .simulation import SimulationPipeline, SimulationResult
from .store import CommercialStore

__all__ = [
    'CommercialStore',
    'CustomerContext',
    'Offer',
    'PriceBook',
    'PricingPolicy',
    'SellableItem',
    'SimulationPipeline',
    'SimulationResult',
]
