"""Alert construction for fired conditions."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pricewatch.engine.evaluator import percent_change
from pricewatch.models import Alert, Condition, ConditionType, Priority

# (minimum |change %|, priority), checked high to low
PRIORITY_BANDS = [
    (Decimal("10"), Priority.URGENT),
    (Decimal("5"), Priority.HIGH),
    (Decimal("2"), Priority.NORMAL),
]


def priority_for(change_percentage: Decimal) -> Priority:
    """Map the size of a move to an alert priority."""
    magnitude = abs(change_percentage)
    for floor, priority in PRIORITY_BANDS:
        if magnitude >= floor:
            return priority
    return Priority.LOW


def _signed(value: Decimal, places: int) -> str:
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:,.{places}f}"


def generate_title(instrument_name: str, change_percentage: Decimal) -> str:
    """Generate an alert title such as ``[KODEX 200] 6.00% fall``."""
    direction = "rise" if change_percentage >= 0 else "fall"
    return f"[{instrument_name}] {abs(change_percentage):.2f}% {direction}"


def generate_message(
    instrument_name: str,
    current_price: Decimal,
    base_price: Decimal,
    change_amount: Decimal,
    change_percentage: Decimal,
    triggered_at: datetime,
) -> str:
    """Generate the multi-line alert body."""
    lines = [
        f"{instrument_name} reached its alert condition.",
        "",
        f"Current price: {current_price:,.2f}",
        f"Base price:    {base_price:,.2f}",
        f"Change:        {_signed(change_amount, 2)}",
        f"Change %:      {_signed(change_percentage, 2)}%",
        "",
        f"Triggered at: {triggered_at.isoformat(timespec='seconds')}",
    ]
    return "\n".join(lines)


def build_alert(
    condition: Condition,
    current_price: Decimal,
    base_price: Decimal,
    instrument_name: str,
    now: Optional[datetime] = None,
) -> Alert:
    """Build the alert record for a fired condition.

    Args:
        condition: The condition that fired.
        current_price: Price at fire time.
        base_price: Reference price the condition was measured against.
        instrument_name: Display name of the instrument.
        now: Fire timestamp (defaults to the current time).

    Returns:
        A new, unsaved Alert.

    Raises:
        ValueError: If the condition type cannot produce alerts.
    """
    if condition.type == ConditionType.VOLUME_SPIKE:
        raise ValueError("VOLUME_SPIKE conditions do not produce alerts")
    if condition.id is None:
        raise ValueError("Cannot build an alert for an unsaved condition")

    triggered_at = now or datetime.now()
    change_amount = current_price - base_price
    change_percentage = percent_change(base_price, current_price)

    return Alert(
        condition_id=condition.id,
        watchlist_id=condition.watchlist_id,
        user_id=condition.user_id,
        instrument_code=condition.instrument_code,
        instrument_name=instrument_name,
        alert_type=condition.type,
        title=generate_title(instrument_name, change_percentage),
        message=generate_message(
            instrument_name,
            current_price,
            base_price,
            change_amount,
            change_percentage,
            triggered_at,
        ),
        priority=priority_for(change_percentage),
        trigger_price=current_price,
        base_price=base_price,
        change_amount=change_amount,
        change_percentage=change_percentage,
        triggered_at=triggered_at,
    )
