"""Tests for the monitoring cycle.

**Feature: price-alerts**
"""

import sqlite3
import tempfile
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pytest

from pricewatch.db.store import DataStore
from pricewatch.engine.monitor import MonitoringCycle, MonitoringError, Outcome
from pricewatch.models import ConditionType, InstrumentSummary, Priority
from pricewatch.sources import PriceSource, StaticPriceSource, StorePriceSource


class Clock:
    """Settable clock for driving the cycle through time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FlakySource(StaticPriceSource):
    """Raises for one instrument code."""

    def __init__(self, failing_code: str):
        super().__init__()
        self.failing_code = failing_code

    def get_summary(self, instrument_code: str) -> Optional[InstrumentSummary]:
        if instrument_code == self.failing_code:
            raise ConnectionError("quote service unavailable")
        return super().get_summary(instrument_code)


class BrokenStore(DataStore):
    def list_monitorable(self, instrument_code=None):
        raise sqlite3.OperationalError("database is locked")


class LosingStore(DataStore):
    """Every fire loses the race to another pass."""

    def record_fire(self, alert, condition, now):
        return None


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield DataStore(db_path)


@pytest.fixture
def clock():
    return Clock(datetime(2024, 3, 4, 9, 0))


def watch_with_drop(store: DataStore, code: str = "069500", base: Optional[str] = "10000"):
    store.add_instrument(1, code, f"ETF {code}")
    return store.create_condition(
        1,
        code,
        ConditionType.PERCENTAGE_DROP,
        Decimal("-5.0"),
        base_price=Decimal(base) if base is not None else None,
    )


class TestMonitoringScenarios:
    """
    **Feature: price-alerts, Property 8: Monitoring Pass**

    A pass fires met conditions once, skips conditions that are cooling
    down or lack a price, and never lets one failure stop the others.
    """

    def test_drop_fires_with_high_priority(self, temp_db: DataStore, clock: Clock):
        condition = watch_with_drop(temp_db)
        source = StaticPriceSource()
        source.set_price("069500", Decimal("9400"), Decimal("10000"))

        fired = MonitoringCycle(temp_db, source, clock=clock).run_once()

        assert fired == 1
        alerts = temp_db.get_alerts(user_id=1)
        assert len(alerts) == 1
        assert alerts[0].change_percentage == Decimal("-6.0000")
        assert alerts[0].priority == Priority.HIGH
        assert alerts[0].condition_id == condition.id
        assert temp_db.get_condition(condition.id).last_fired_at == clock.now

    def test_small_drop_does_not_fire(self, temp_db: DataStore, clock: Clock):
        condition = watch_with_drop(temp_db)
        source = StaticPriceSource()
        source.set_price("069500", Decimal("9600"), Decimal("10000"))

        assert MonitoringCycle(temp_db, source, clock=clock).run_once() == 0
        assert temp_db.get_alerts(user_id=1) == []
        assert temp_db.get_condition(condition.id).last_fired_at is None

    def test_first_pass_fixes_base_price_without_firing(self, temp_db: DataStore, clock: Clock):
        condition = watch_with_drop(temp_db, base=None)
        source = StaticPriceSource()
        source.set_price("069500", Decimal("5000"), Decimal("10000"))
        cycle = MonitoringCycle(temp_db, source, clock=clock)

        report = cycle.run_pass()

        assert report.fired == 0
        assert report.base_prices_set == 1
        assert temp_db.get_condition(condition.id).base_price == Decimal("10000")
        assert temp_db.get_alerts(user_id=1) == []

        # the next pass measures against the fixed base
        assert cycle.run_once() == 1

    def test_missing_prior_close_leaves_base_unset(self, temp_db: DataStore, clock: Clock):
        condition = watch_with_drop(temp_db, base=None)
        source = StaticPriceSource()
        source.set_price("069500", Decimal("5000"))

        report = MonitoringCycle(temp_db, source, clock=clock).run_pass()

        assert report.skipped_no_price == 1
        assert temp_db.get_condition(condition.id).base_price is None

    def test_cooldown_blocks_refire_within_hour(self, temp_db: DataStore, clock: Clock):
        watch_with_drop(temp_db)
        source = StaticPriceSource()
        source.set_price("069500", Decimal("9400"), Decimal("10000"))
        cycle = MonitoringCycle(temp_db, source, clock=clock)

        assert cycle.run_once() == 1

        clock.advance(minutes=45)
        report = cycle.run_pass()
        assert report.fired == 0
        assert report.skipped_cooldown == 1

        clock.advance(minutes=20)
        assert cycle.run_once() == 1
        assert len(temp_db.get_alerts(user_id=1)) == 2

    def test_failed_lookup_is_skipped(self, temp_db: DataStore, clock: Clock):
        codes = ["A001", "A002", "A003", "A004", "A005"]
        source = FlakySource(failing_code="A003")
        for code in codes:
            watch_with_drop(temp_db, code)
            source.set_price(code, Decimal("9000"), Decimal("10000"))

        report = MonitoringCycle(temp_db, source, clock=clock).run_pass()

        assert report.evaluated == 5
        assert report.fired == 4
        assert report.skipped_no_price == 1
        fired_codes = {a.instrument_code for a in temp_db.get_alerts(user_id=1)}
        assert fired_codes == {"A001", "A002", "A004", "A005"}

    def test_unknown_instrument_is_skipped(self, temp_db: DataStore, clock: Clock):
        watch_with_drop(temp_db, "A001")
        watch_with_drop(temp_db, "A002")
        source = StaticPriceSource()
        source.set_price("A001", Decimal("9000"), Decimal("10000"))

        assert MonitoringCycle(temp_db, source, clock=clock).run_once() == 1

    def test_non_positive_price_is_skipped(self, temp_db: DataStore, clock: Clock):
        watch_with_drop(temp_db)
        source = StaticPriceSource()
        source.set_price("069500", Decimal("0"), Decimal("10000"))

        report = MonitoringCycle(temp_db, source, clock=clock).run_pass()
        assert report.skipped_no_price == 1
        assert report.fired == 0


class TestMonitoringScope:
    def test_inactive_and_muted_conditions_are_ignored(self, temp_db: DataStore, clock: Clock):
        first = watch_with_drop(temp_db, "A001")
        watch_with_drop(temp_db, "A002")
        watch_with_drop(temp_db, "A003")
        temp_db.deactivate_condition(first.id, 1)
        temp_db.set_notifications(1, "A002", False)

        source = StaticPriceSource()
        for code in ("A001", "A002", "A003"):
            source.set_price(code, Decimal("9000"), Decimal("10000"))

        report = MonitoringCycle(temp_db, source, clock=clock).run_pass()
        assert report.evaluated == 1
        assert report.fired == 1

    def test_muting_and_unmuting_keeps_one_rule_per_type(self, temp_db: DataStore, clock: Clock):
        replaced = watch_with_drop(temp_db)
        temp_db.deactivate_condition(replaced.id, 1)
        temp_db.create_condition(
            1, "069500", ConditionType.PERCENTAGE_DROP, Decimal("-3"), base_price=Decimal("10000")
        )
        temp_db.set_notifications(1, "069500", False)
        temp_db.set_notifications(1, "069500", True)

        source = StaticPriceSource()
        source.set_price("069500", Decimal("9000"), Decimal("10000"))
        cycle = MonitoringCycle(temp_db, source, clock=clock)

        # unmuting resets the base price, so the first pass only fixes it
        assert cycle.run_pass().base_prices_set == 1
        assert cycle.run_once() == 1

    def test_run_for_instrument(self, temp_db: DataStore, clock: Clock):
        source = StaticPriceSource()
        for code in ("A001", "A002"):
            watch_with_drop(temp_db, code)
            source.set_price(code, Decimal("9000"), Decimal("10000"))

        assert MonitoringCycle(temp_db, source, clock=clock).run_for_instrument("A002") == 1
        assert [a.instrument_code for a in temp_db.get_alerts(user_id=1)] == ["A002"]

    def test_empty_store(self, temp_db: DataStore, clock: Clock):
        report = MonitoringCycle(temp_db, StaticPriceSource(), clock=clock).run_pass()
        assert report.evaluated == 0
        assert report.fired == 0

    def test_store_price_source(self, temp_db: DataStore, clock: Clock):
        watch_with_drop(temp_db)
        temp_db.save_price(InstrumentSummary(
            instrument_code="069500",
            instrument_name="KODEX 200",
            current_price=Decimal("9400"),
            prior_close_price=Decimal("10000"),
        ))

        assert MonitoringCycle(temp_db, StorePriceSource(temp_db), clock=clock).run_once() == 1


class TestMonitoringConcurrency:
    """
    **Feature: price-alerts, Property 9: At Most Once Per Cooldown**

    However many workers or passes run, one condition fires at most once
    per cooldown window.
    """

    def test_worker_pool_fires_each_condition_once(self, temp_db: DataStore, clock: Clock):
        source = StaticPriceSource()
        codes = [f"B{i:03d}" for i in range(8)]
        for code in codes:
            watch_with_drop(temp_db, code)
            source.set_price(code, Decimal("9000"), Decimal("10000"))

        cycle = MonitoringCycle(temp_db, source, max_workers=4, clock=clock)
        assert cycle.run_once() == len(codes)
        assert cycle.run_once() == 0
        assert temp_db.count_alerts(user_id=1) == len(codes)

    def test_overlapping_passes_do_not_double_fire(self, temp_db: DataStore, clock: Clock):
        watch_with_drop(temp_db)
        source = StaticPriceSource()
        source.set_price("069500", Decimal("9000"), Decimal("10000"))
        cycle = MonitoringCycle(temp_db, source, clock=clock)

        # both passes read the condition before either fires
        stale = temp_db.list_monitorable()[0]
        assert cycle.check_condition(stale) == Outcome.FIRED
        assert cycle.check_condition(stale) == Outcome.RACED
        assert temp_db.count_alerts(user_id=1) == 1

    def test_lost_race_is_reported(self, clock: Clock):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = LosingStore(Path(tmpdir) / "test.db")
            watch_with_drop(store)
            source = StaticPriceSource()
            source.set_price("069500", Decimal("9000"), Decimal("10000"))

            report = MonitoringCycle(store, source, clock=clock).run_pass()
            assert report.fired == 0
            assert report.raced == 1


class TestMonitoringErrors:
    def test_listing_failure_raises(self, clock: Clock):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = BrokenStore(Path(tmpdir) / "test.db")
            with pytest.raises(MonitoringError):
                MonitoringCycle(store, StaticPriceSource(), clock=clock).run_once()

    def test_condition_failure_is_contained(self, temp_db: DataStore, clock: Clock):
        class ExplodingSource(PriceSource):
            def get_summary(self, instrument_code):
                # not a usable summary; evaluation fails past the lookup
                return object()

        watch_with_drop(temp_db)
        report = MonitoringCycle(temp_db, ExplodingSource(), clock=clock).run_pass()
        assert report.errors == 1
        assert report.fired == 0
