"""Statistics and reporting over conditions and alerts."""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from pricewatch.db.store import HIGH_PRIORITIES, DataStore

RECENT_WINDOW = timedelta(days=1)


class MonitoringStatistics(BaseModel):
    """What the monitoring cycle is watching and how often it fires."""

    active_conditions: int = Field(..., ge=0)
    alerts_last_24h: int = Field(..., ge=0)

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return (
            f"Active conditions: {self.active_conditions}, "
            f"alerts in last 24h: {self.alerts_last_24h}"
        )


class AlertStatistics(BaseModel):
    """Alert counts for one user, or for everyone."""

    total: int = Field(..., ge=0)
    unread: int = Field(..., ge=0)
    last_24h: int = Field(..., ge=0)
    high_priority: int = Field(..., ge=0)
    by_type: dict[str, int] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return (
            f"Total: {self.total}, unread: {self.unread}, "
            f"last 24h: {self.last_24h}, high priority: {self.high_priority}"
        )


class ConditionStatistics(BaseModel):
    """Condition counts for one user."""

    total: int = Field(..., ge=0)
    active: int = Field(..., ge=0)
    by_type: dict[str, int] = Field(default_factory=dict)

    model_config = {"frozen": True}


class SystemStatistics(BaseModel):
    """System-wide snapshot used by ``monitor status``."""

    alerts: AlertStatistics
    active_conditions: int = Field(..., ge=0)
    tables: dict[str, int] = Field(default_factory=dict)

    model_config = {"frozen": True}


def monitoring_statistics(store: DataStore, now: Optional[datetime] = None) -> MonitoringStatistics:
    """Count monitorable conditions and alerts fired in the last 24 hours."""
    now = now or datetime.now()
    return MonitoringStatistics(
        active_conditions=len(store.list_monitorable()),
        alerts_last_24h=store.count_alerts(since=now - RECENT_WINDOW),
    )


def alert_statistics(
    store: DataStore, user_id: Optional[int] = None, now: Optional[datetime] = None
) -> AlertStatistics:
    """Summarise alerts for a user (or all users when ``user_id`` is None)."""
    now = now or datetime.now()
    return AlertStatistics(
        total=store.count_alerts(user_id=user_id),
        unread=store.count_alerts(user_id=user_id, unread_only=True),
        last_24h=store.count_alerts(user_id=user_id, since=now - RECENT_WINDOW),
        high_priority=store.count_alerts(user_id=user_id, priorities=HIGH_PRIORITIES),
        by_type=store.get_alert_type_counts(user_id),
    )


def condition_statistics(store: DataStore, user_id: int) -> ConditionStatistics:
    """Summarise a user's conditions."""
    all_counts = store.get_condition_type_counts(user_id, active_only=False)
    active_counts = store.get_condition_type_counts(user_id, active_only=True)
    return ConditionStatistics(
        total=sum(all_counts.values()),
        active=sum(active_counts.values()),
        by_type=active_counts,
    )


def system_statistics(store: DataStore, now: Optional[datetime] = None) -> SystemStatistics:
    """Global alert counts, monitorable conditions and table sizes."""
    return SystemStatistics(
        alerts=alert_statistics(store, now=now),
        active_conditions=len(store.list_monitorable()),
        tables=store.get_stats(),
    )
