"""Data models for pricewatch."""

from pricewatch.models.alert import Alert, AlertStatus, Priority
from pricewatch.models.condition import Condition, ConditionType
from pricewatch.models.summary import InstrumentSummary
from pricewatch.models.watchlist import WatchedInstrument

__all__ = [
    "Alert",
    "AlertStatus",
    "Condition",
    "ConditionType",
    "InstrumentSummary",
    "Priority",
    "WatchedInstrument",
]
