"""Condition evaluation and alert generation.

The monitoring cycle and statistics helpers live in
:mod:`pricewatch.engine.monitor` and :mod:`pricewatch.engine.stats`.
"""

from pricewatch.engine.cooldown import COOLDOWN, allowed_to_fire
from pricewatch.engine.evaluator import evaluate, percent_change, validate_condition
from pricewatch.engine.factory import build_alert, priority_for

__all__ = [
    "COOLDOWN",
    "allowed_to_fire",
    "build_alert",
    "evaluate",
    "percent_change",
    "priority_for",
    "validate_condition",
]
