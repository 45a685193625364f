"""Pricing service module.

Resolves free-text ingredient terms into priced grocery products.
"""

from price_gateway.services.pricing.aggregator import (
    BatchAggregator,
    ChunkedHttpDispatcher,
    WorkerPoolDispatcher,
)
from price_gateway.services.pricing.cache import MISS, PriceCache
from price_gateway.services.pricing.locator import StoreLocator
from price_gateway.services.pricing.resolver import ProductResolver, shape_top_result
from price_gateway.services.pricing.service import PricingService
from price_gateway.services.pricing.token_broker import BearerToken, TokenBroker


__all__ = [
    "MISS",
    "BatchAggregator",
    "BearerToken",
    "ChunkedHttpDispatcher",
    "PriceCache",
    "PricingService",
    "ProductResolver",
    "StoreLocator",
    "TokenBroker",
    "WorkerPoolDispatcher",
    "shape_top_result",
]
