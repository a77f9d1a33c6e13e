"""In-memory price source for tests and dry runs."""

from decimal import Decimal
from typing import Optional

from pricewatch.models import InstrumentSummary
from pricewatch.sources.base import PriceSource


class StaticPriceSource(PriceSource):
    """Serves summaries from a dict keyed by instrument code."""

    def __init__(self, summaries: Optional[dict[str, InstrumentSummary]] = None):
        self._summaries: dict[str, InstrumentSummary] = dict(summaries or {})

    def set_price(
        self,
        instrument_code: str,
        current_price: Decimal,
        prior_close_price: Optional[Decimal] = None,
        instrument_name: str = "",
    ) -> InstrumentSummary:
        """Set the summary for an instrument and return it."""
        summary = InstrumentSummary(
            instrument_code=instrument_code,
            instrument_name=instrument_name or instrument_code,
            current_price=current_price,
            prior_close_price=prior_close_price,
        )
        self._summaries[instrument_code] = summary
        return summary

    def remove(self, instrument_code: str) -> None:
        self._summaries.pop(instrument_code, None)

    def get_summary(self, instrument_code: str) -> Optional[InstrumentSummary]:
        return self._summaries.get(instrument_code)
