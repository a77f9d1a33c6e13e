"""Monitoring cycle.

One pass reads every monitorable condition, checks its cooldown, looks up the
instrument's current price, evaluates the condition and records an alert for
each condition that fires. A failure on one condition is logged and treated as
a skip; only failing to enumerate the conditions aborts the pass.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from pricewatch.db.store import DataStore
from pricewatch.engine.cooldown import allowed_to_fire
from pricewatch.engine.evaluator import evaluate
from pricewatch.engine.factory import build_alert
from pricewatch.models import Condition
from pricewatch.sources.base import PriceSource

logger = logging.getLogger(__name__)


class MonitoringError(RuntimeError):
    """Raised when a pass cannot enumerate its conditions."""


class Outcome(str, Enum):
    """Result of checking one condition."""

    FIRED = "fired"
    NOT_MET = "not_met"
    COOLDOWN = "cooldown"
    NO_PRICE = "no_price"
    BASE_SET = "base_set"
    RACED = "raced"
    ERROR = "error"


class MonitoringReport(BaseModel):
    """Counters for one monitoring pass."""

    started_at: datetime
    evaluated: int = 0
    fired: int = 0
    not_met: int = 0
    skipped_cooldown: int = 0
    skipped_no_price: int = 0
    base_prices_set: int = 0
    raced: int = 0
    errors: int = 0

    def add(self, outcome: Outcome) -> None:
        self.evaluated += 1
        if outcome == Outcome.FIRED:
            self.fired += 1
        elif outcome == Outcome.NOT_MET:
            self.not_met += 1
        elif outcome == Outcome.COOLDOWN:
            self.skipped_cooldown += 1
        elif outcome == Outcome.NO_PRICE:
            self.skipped_no_price += 1
        elif outcome == Outcome.BASE_SET:
            self.base_prices_set += 1
        elif outcome == Outcome.RACED:
            self.raced += 1
        else:
            self.errors += 1


class MonitoringCycle:
    """Runs monitoring passes over the conditions in a data store."""

    def __init__(
        self,
        data_store: DataStore,
        price_source: PriceSource,
        max_workers: int = 1,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the monitoring cycle.

        Args:
            data_store: Condition and alert store.
            price_source: Source of current instrument prices.
            max_workers: Worker threads per pass. 1 evaluates sequentially.
            clock: Returns the current time. Injected for tests.
        """
        self._data_store = data_store
        self._price_source = price_source
        self._max_workers = max(1, max_workers)
        self._clock = clock

    def run_once(self) -> int:
        """Run one pass over all monitorable conditions.

        Returns:
            Number of alerts fired.

        Raises:
            MonitoringError: If the monitorable conditions cannot be listed.
        """
        return self.run_pass().fired

    def run_for_instrument(self, instrument_code: str) -> int:
        """Run one pass over the monitorable conditions of a single instrument.

        Returns:
            Number of alerts fired.
        """
        return self.run_pass(instrument_code=instrument_code).fired

    def run_pass(self, instrument_code: Optional[str] = None) -> MonitoringReport:
        """Run one pass and return its full report."""
        report = MonitoringReport(started_at=self._clock())
        logger.info("Monitoring pass started")

        try:
            conditions = self._data_store.list_monitorable(instrument_code)
        except Exception as e:
            logger.exception("Could not list monitorable conditions")
            raise MonitoringError(f"Failed to list monitorable conditions: {e}") from e

        if not conditions:
            logger.info("No active conditions to monitor")
            return report

        logger.info("Monitoring %d conditions", len(conditions))

        if self._max_workers == 1 or len(conditions) == 1:
            outcomes = [self.check_condition(c) for c in conditions]
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
                outcomes = list(executor.map(self.check_condition, conditions))

        for outcome in outcomes:
            report.add(outcome)

        logger.info(
            "Monitoring pass finished: %d fired, %d not met, %d cooling down, "
            "%d without price, %d base prices set, %d errors",
            report.fired, report.not_met, report.skipped_cooldown,
            report.skipped_no_price, report.base_prices_set, report.errors,
        )
        return report

    def check_condition(self, condition: Condition) -> Outcome:
        """Check one condition and fire it if it is met.

        Never raises; failures are logged and reported as ``Outcome.ERROR``.
        """
        try:
            return self._check_condition(condition)
        except Exception:
            logger.exception("Error while checking condition %s", condition.id)
            return Outcome.ERROR

    def _check_condition(self, condition: Condition) -> Outcome:
        now = self._clock()

        if not allowed_to_fire(condition, now):
            logger.debug(
                "Condition %s cooling down, last fired at %s",
                condition.id, condition.last_fired_at,
            )
            return Outcome.COOLDOWN

        code = condition.instrument_code
        try:
            summary = self._price_source.get_summary(code)
        except Exception as e:
            logger.warning("Price lookup failed for %s: %s", code, e)
            return Outcome.NO_PRICE

        if summary is None:
            logger.warning("No price data for %s", code)
            return Outcome.NO_PRICE

        current_price = summary.current_price
        if current_price is None or current_price <= 0:
            logger.warning("Invalid price for %s: %s", code, current_price)
            return Outcome.NO_PRICE

        if condition.base_price is None:
            return self._fix_base_price(condition, summary.prior_close_price)

        base_price: Decimal = condition.base_price
        if not evaluate(condition, current_price, base_price):
            return Outcome.NOT_MET

        instrument_name = condition.instrument_name or summary.instrument_name or code
        alert = build_alert(condition, current_price, base_price, instrument_name, now=now)
        alert_id = self._data_store.record_fire(alert, condition, now)
        if alert_id is None:
            logger.info("Condition %s was fired by another pass, skipping", condition.id)
            return Outcome.RACED

        logger.info(
            "Alert %s fired: user %s, %s, %s, current %s, base %s",
            alert_id, condition.user_id, instrument_name,
            condition.type.value, current_price, base_price,
        )
        return Outcome.FIRED

    def _fix_base_price(self, condition: Condition, prior_close: Optional[Decimal]) -> Outcome:
        if prior_close is None or prior_close <= 0:
            logger.warning(
                "Cannot set base price for condition %s: no prior close for %s",
                condition.id, condition.instrument_code,
            )
            return Outcome.NO_PRICE

        if self._data_store.set_base_price(condition.id, prior_close):
            logger.info("Base price for condition %s set to %s", condition.id, prior_close)
        return Outcome.BASE_SET
