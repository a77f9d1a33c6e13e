"""WatchedInstrument data model."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class WatchedInstrument(BaseModel):
    """An instrument on a user's watchlist."""

    id: Optional[int] = Field(default=None, description="Database ID")
    user_id: int = Field(..., description="Owning user")
    instrument_code: str = Field(..., min_length=1, description="Stable instrument code")
    instrument_name: str = Field(..., min_length=1, description="Display name")
    active: bool = Field(default=True, description="Whether the entry is still watched")
    notification_enabled: bool = Field(
        default=True, description="Whether conditions on this entry are monitored"
    )
    memo: Optional[str] = Field(default=None, description="User memo")
    created_at: datetime = Field(
        default_factory=datetime.now, description="Creation timestamp"
    )
    removed_at: Optional[datetime] = Field(default=None, description="Removal timestamp")

    model_config = {"frozen": True}
