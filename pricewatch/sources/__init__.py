"""Price sources for pricewatch."""

from pricewatch.sources.base import PriceSource
from pricewatch.sources.static import StaticPriceSource
from pricewatch.sources.store import StorePriceSource

__all__ = [
    "PriceSource",
    "StaticPriceSource",
    "StorePriceSource",
]
