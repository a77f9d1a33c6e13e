"""pricewatch - price-threshold conditions and alert generation."""

__version__ = "0.1.0"
