"""Cooldown guard: at most one fire per condition per hour."""

from datetime import datetime, timedelta

from pricewatch.models import Condition

COOLDOWN = timedelta(hours=1)


def allowed_to_fire(condition: Condition, now: datetime) -> bool:
    """Check whether a condition is outside its cooldown window.

    Args:
        condition: The condition to check.
        now: Current time.

    Returns:
        False if the condition fired less than an hour before ``now``,
        True otherwise.
    """
    if condition.last_fired_at is None:
        return True
    return now - condition.last_fired_at >= COOLDOWN


def cooldown_remaining(condition: Condition, now: datetime) -> timedelta:
    """Time left until the condition may fire again (zero if it already may)."""
    if condition.last_fired_at is None:
        return timedelta(0)
    return max(COOLDOWN - (now - condition.last_fired_at), timedelta(0))
