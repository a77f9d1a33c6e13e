"""Base price source interface for pricewatch."""

from abc import ABC, abstractmethod
from typing import Optional

from pricewatch.models import InstrumentSummary


class PriceSource(ABC):
    """Abstract base class for price source implementations.

    A price source exposes the latest summary for an instrument. It is
    populated elsewhere (market-data ingestion); the monitoring cycle only
    reads from it.
    """

    @abstractmethod
    def get_summary(self, instrument_code: str) -> Optional[InstrumentSummary]:
        """Get the latest summary for an instrument.

        Args:
            instrument_code: Instrument code.

        Returns:
            InstrumentSummary if known, None otherwise.
        """
        pass
