"""CLI commands for pricewatch.

This package provides the command-line interface: watchlist and condition
management, alert review, price updates and monitoring passes.
"""

from pricewatch.cli.main import cli, main

__all__ = ["cli", "main"]
