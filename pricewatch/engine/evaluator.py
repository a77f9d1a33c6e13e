"""Condition evaluation.

Pure decision functions: given a condition and the current and base prices,
decide whether the condition fires. Nothing here touches storage or clocks.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, localcontext

from pricewatch.models import Condition, ConditionType

logger = logging.getLogger(__name__)

PERCENT_QUANTUM = Decimal("0.0001")


def percent_change(base_price: Decimal, current_price: Decimal) -> Decimal:
    """Calculate the percent change from base to current.

    Args:
        base_price: Reference price.
        current_price: Latest price.

    Returns:
        ``(current - base) / base * 100`` rounded half-up to 4 decimal places,
        or zero when the base price is zero.
    """
    if base_price == 0:
        return Decimal("0")
    with localcontext() as ctx:
        ctx.prec = 50
        change = (current_price - base_price) / base_price * 100
        # room for every integer digit plus the four decimals
        ctx.prec = max(ctx.prec, change.adjusted() + 6)
        return change.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def evaluate(condition: Condition, current_price: Decimal, base_price: Decimal) -> bool:
    """Evaluate if a condition is met.

    Args:
        condition: The condition to check.
        current_price: Current price of the instrument (must be positive).
        base_price: Reference price the threshold is measured against.
            Ignored for PRICE_TARGET.

    Returns:
        True if the condition fires, False otherwise. Reserved and
        unrecognised types never fire.
    """
    cond_type = condition.type
    threshold = condition.threshold

    if cond_type == ConditionType.PERCENTAGE_DROP:
        return percent_change(base_price, current_price) <= threshold
    elif cond_type == ConditionType.PERCENTAGE_RISE:
        return percent_change(base_price, current_price) >= threshold
    elif cond_type == ConditionType.PRICE_DROP:
        return current_price - base_price <= threshold
    elif cond_type == ConditionType.PRICE_RISE:
        return current_price - base_price >= threshold
    elif cond_type == ConditionType.PRICE_TARGET:
        return current_price >= threshold
    elif cond_type == ConditionType.VOLUME_SPIKE:
        return False

    logger.warning("Unsupported condition type %r on condition %s", cond_type, condition.id)
    return False


def validate_condition(cond_type: ConditionType, threshold: Decimal) -> bool:
    """Validate that a threshold makes sense for a condition type.

    Args:
        cond_type: The condition type.
        threshold: The proposed threshold.

    Returns:
        True if the pair is accepted, False otherwise.
    """
    if threshold is None:
        return False

    if cond_type == ConditionType.PERCENTAGE_DROP:
        return Decimal("-50") <= threshold < 0
    elif cond_type == ConditionType.PERCENTAGE_RISE:
        return 0 < threshold <= Decimal("100")
    elif cond_type == ConditionType.PRICE_DROP:
        return threshold < 0
    elif cond_type in (ConditionType.PRICE_RISE, ConditionType.PRICE_TARGET):
        return threshold > 0

    return False
