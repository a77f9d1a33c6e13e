"""Alert data model."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from pricewatch.models.condition import ConditionType


class Priority(str, Enum):
    """Alert priority, derived from the size of the move."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class AlertStatus(str, Enum):
    """Alert lifecycle status."""

    ACTIVE = "ACTIVE"
    DISMISSED = "DISMISSED"
    EXPIRED = "EXPIRED"


class Alert(BaseModel):
    """An immutable record of one condition firing."""

    id: Optional[int] = Field(default=None, description="Database ID")
    condition_id: int = Field(..., description="Condition that fired")
    watchlist_id: int = Field(..., description="Watched instrument ID")
    user_id: int = Field(..., description="Owning user")
    instrument_code: str = Field(..., min_length=1, description="Instrument code")
    instrument_name: str = Field(..., description="Instrument display name")
    alert_type: ConditionType = Field(..., description="Condition type at fire time")
    title: str = Field(..., min_length=1, description="Alert title")
    message: str = Field(..., description="Alert body")
    priority: Priority = Field(default=Priority.NORMAL, description="Alert priority")
    trigger_price: Decimal = Field(..., description="Price that triggered the alert")
    base_price: Decimal = Field(..., description="Reference price")
    change_amount: Decimal = Field(..., description="trigger_price - base_price")
    change_percentage: Decimal = Field(..., description="Percent change from base")
    triggered_at: datetime = Field(
        default_factory=datetime.now, description="Fire timestamp"
    )
    read: bool = Field(default=False, description="Whether the alert was read")
    read_at: Optional[datetime] = Field(default=None, description="Read timestamp")
    status: AlertStatus = Field(default=AlertStatus.ACTIVE, description="Alert status")

    model_config = {"frozen": True}
