"""Condition data model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ConditionType(str, Enum):
    """Kinds of price-threshold rules."""

    PRICE_DROP = "PRICE_DROP"  # absolute move below base
    PRICE_RISE = "PRICE_RISE"  # absolute move above base
    PERCENTAGE_DROP = "PERCENTAGE_DROP"
    PERCENTAGE_RISE = "PERCENTAGE_RISE"
    PRICE_TARGET = "PRICE_TARGET"  # absolute target, base ignored
    VOLUME_SPIKE = "VOLUME_SPIKE"  # reserved, never fires

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").lower()


class Condition(BaseModel):
    """A standing price-threshold rule bound to one watched instrument."""

    id: Optional[int] = Field(default=None, description="Database ID")
    watchlist_id: int = Field(..., description="Watched instrument ID")
    user_id: int = Field(..., description="Owning user")
    instrument_code: str = Field(..., min_length=1, description="Instrument code")
    instrument_name: str = Field(default="", description="Instrument display name")
    type: ConditionType = Field(..., description="Rule type")
    threshold: Decimal = Field(..., description="Threshold, meaning depends on type")
    base_price: Optional[Decimal] = Field(
        default=None, description="Reference price, fixed on first evaluation"
    )
    active: bool = Field(default=True, description="Inactive conditions are never evaluated")
    last_fired_at: Optional[datetime] = Field(
        default=None, description="Timestamp of the most recent fire"
    )
    description: Optional[str] = Field(default=None, description="Free-text annotation")
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}
