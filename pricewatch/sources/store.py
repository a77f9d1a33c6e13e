"""Price source backed by the SQLite data store."""

from typing import Optional

from pricewatch.db.store import DataStore
from pricewatch.models import InstrumentSummary
from pricewatch.sources.base import PriceSource


class StorePriceSource(PriceSource):
    """Reads instrument summaries written to the ``instrument_prices`` table."""

    def __init__(self, data_store: DataStore):
        """Initialize the price source.

        Args:
            data_store: DataStore holding ingested prices.
        """
        self._data_store = data_store

    def get_summary(self, instrument_code: str) -> Optional[InstrumentSummary]:
        return self._data_store.get_price(instrument_code)
