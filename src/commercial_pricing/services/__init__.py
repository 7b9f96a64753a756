"""Services subpackage - lifecycle state machines over the store."""
from .bundle_service import BundleService
from .discount_rule_service import DiscountRuleService
from .offer_service import OfferService
from .price_book_service import PriceBookService

__all__ = ['BundleService', 'DiscountRuleService', 'OfferService', 'PriceBookService']
