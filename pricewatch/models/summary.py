"""InstrumentSummary data model."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class InstrumentSummary(BaseModel):
    """Latest market data for one instrument, as exposed by a price source."""

    instrument_code: str = Field(..., min_length=1, description="Instrument code")
    instrument_name: str = Field(default="", description="Instrument display name")
    current_price: Decimal = Field(..., description="Latest price")
    prior_close_price: Optional[Decimal] = Field(
        default=None, description="Prior close, used to seed base prices"
    )
    change_percent: Optional[Decimal] = Field(
        default=None, description="Percent change versus prior close"
    )
    as_of: datetime = Field(default_factory=datetime.now, description="Data timestamp")

    model_config = {"frozen": True}
