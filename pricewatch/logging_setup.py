"""Logging configuration for the pricewatch CLI."""

import logging

from rich.logging import RichHandler


def configure_logging(level: str = "INFO") -> None:
    """Route log records through rich.

    Args:
        level: Log level name, e.g. ``"INFO"`` or ``"DEBUG"``.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
