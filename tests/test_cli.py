"""Tests for the pricewatch CLI commands."""

import tempfile
from decimal import Decimal
from pathlib import Path

import pytest
import toml
from click.testing import CliRunner

from pricewatch.cli.main import cli
from pricewatch.db.store import DataStore
from pricewatch.models import AlertStatus, ConditionType


@pytest.fixture
def workspace(monkeypatch: pytest.MonkeyPatch):
    """Point the CLI at a config and database in a temp directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        tmp = Path(tmpdir)
        db_path = tmp / "pricewatch.db"
        config_path = tmp / "config.toml"
        config_path.write_text(toml.dumps({
            "database": {"path": str(db_path)},
            "monitor": {"max_workers": 2},
            "logging": {"level": "WARNING"},
        }))
        monkeypatch.setenv("PRICEWATCH_CONFIG", str(config_path))
        yield db_path


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def invoke(runner: CliRunner, *args: str):
    result = runner.invoke(cli, list(args))
    return result


class TestInit:
    def test_init_keeps_existing_config(self, runner: CliRunner, workspace: Path):
        result = invoke(runner, "init")
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert workspace.exists()

    def test_help_lists_commands(self, runner: CliRunner, workspace: Path):
        result = invoke(runner, "--help")
        assert result.exit_code == 0
        for name in ("alerts", "condition", "monitor", "price", "watch"):
            assert name in result.output


class TestWatchAndConditions:
    def test_watch_add_list_remove(self, runner: CliRunner, workspace: Path):
        assert invoke(runner, "watch", "add", "069500", "KODEX 200").exit_code == 0
        result = invoke(runner, "watch", "list")
        assert result.exit_code == 0
        assert "069500" in result.output

        assert invoke(runner, "watch", "remove", "069500").exit_code == 0
        assert DataStore(workspace).get_instruments(1) == []
        assert invoke(runner, "watch", "remove", "069500").exit_code == 1

    def test_condition_add(self, runner: CliRunner, workspace: Path):
        invoke(runner, "watch", "add", "069500", "KODEX 200")
        result = invoke(runner, "condition", "add", "069500", "percentage_drop", "-3")
        assert result.exit_code == 0
        assert "Condition Created" in result.output

        conditions = DataStore(workspace).get_conditions(1)
        assert len(conditions) == 1
        assert conditions[0].type == ConditionType.PERCENTAGE_DROP
        assert conditions[0].threshold == Decimal("-3")

    def test_negative_thresholds_are_arguments(self, runner: CliRunner, workspace: Path):
        invoke(runner, "watch", "add", "069500", "KODEX 200")
        result = invoke(runner, "condition", "add", "069500", "PRICE_DROP", "-500.5")
        assert result.exit_code == 0, result.output
        condition = DataStore(workspace).get_conditions(1)[0]
        assert condition.threshold == Decimal("-500.5")

        result = invoke(runner, "condition", "update", str(condition.id), "--threshold", "-700")
        assert result.exit_code == 0, result.output
        assert DataStore(workspace).get_condition(condition.id).threshold == Decimal("-700")

    def test_condition_add_rejects_non_positive_base(self, runner: CliRunner, workspace: Path):
        invoke(runner, "watch", "add", "069500", "KODEX 200")
        result = invoke(runner, "condition", "add", "069500", "PERCENTAGE_DROP", "-3", "--base", "0")
        assert result.exit_code == 1
        assert DataStore(workspace).get_conditions(1) == []

    def test_condition_add_rejects_bad_threshold(self, runner: CliRunner, workspace: Path):
        invoke(runner, "watch", "add", "069500", "KODEX 200")
        result = invoke(runner, "condition", "add", "069500", "PERCENTAGE_DROP", "3")
        assert result.exit_code == 1
        assert DataStore(workspace).get_conditions(1) == []

    def test_condition_add_rejects_non_number(self, runner: CliRunner, workspace: Path):
        invoke(runner, "watch", "add", "069500", "KODEX 200")
        result = invoke(runner, "condition", "add", "069500", "PRICE_TARGET", "abc")
        assert result.exit_code == 2

    def test_condition_update_toggle_remove(self, runner: CliRunner, workspace: Path):
        invoke(runner, "watch", "add", "069500", "KODEX 200")
        invoke(runner, "condition", "add", "069500", "PERCENTAGE_RISE", "5", "--base", "10000")
        condition_id = str(DataStore(workspace).get_conditions(1)[0].id)

        assert invoke(runner, "condition", "update", condition_id, "--threshold", "7").exit_code == 0
        assert DataStore(workspace).get_condition(int(condition_id)).threshold == Decimal("7")

        assert invoke(runner, "condition", "toggle", condition_id).exit_code == 0
        assert not DataStore(workspace).get_condition(int(condition_id)).active

        assert invoke(runner, "condition", "remove", condition_id).exit_code == 0
        assert invoke(runner, "condition", "update", condition_id, "--threshold", "8").exit_code == 1

    def test_other_user_cannot_touch_condition(self, runner: CliRunner, workspace: Path):
        invoke(runner, "watch", "add", "069500", "KODEX 200")
        invoke(runner, "condition", "add", "069500", "PRICE_TARGET", "40000")
        condition_id = str(DataStore(workspace).get_conditions(1)[0].id)
        assert invoke(runner, "condition", "toggle", condition_id, "--user", "2").exit_code == 1


class TestMonitorFlow:
    def _fire_one(self, runner: CliRunner) -> None:
        invoke(runner, "watch", "add", "069500", "KODEX 200")
        invoke(runner, "condition", "add", "069500", "PERCENTAGE_DROP", "-5", "--base", "10000")
        assert invoke(runner, "price", "set", "069500", "9400", "--prior-close", "10000").exit_code == 0
        result = invoke(runner, "monitor", "run")
        assert result.exit_code == 0, result.output

    def test_run_fires_alert(self, runner: CliRunner, workspace: Path):
        self._fire_one(runner)
        alerts = DataStore(workspace).get_alerts(user_id=1)
        assert len(alerts) == 1
        assert alerts[0].title == "[KODEX 200] 6.00% fall"

        # second pass within the hour stays quiet
        assert invoke(runner, "monitor", "run").exit_code == 0
        assert DataStore(workspace).count_alerts(user_id=1) == 1

    def test_alerts_read_dismiss(self, runner: CliRunner, workspace: Path):
        self._fire_one(runner)
        alert_id = DataStore(workspace).get_alerts(user_id=1)[0].id

        result = invoke(runner, "alerts")
        assert result.exit_code == 0
        assert "1 unread" in result.output

        assert invoke(runner, "alerts", "--read", str(alert_id)).exit_code == 0
        assert DataStore(workspace).count_unread(1) == 0

        assert invoke(runner, "alerts", "--dismiss", str(alert_id)).exit_code == 0
        assert DataStore(workspace).get_alert(alert_id, 1).status == AlertStatus.DISMISSED

        assert invoke(runner, "alerts", "--read", "999").exit_code == 1

    def test_read_all(self, runner: CliRunner, workspace: Path):
        self._fire_one(runner)
        result = invoke(runner, "alerts", "--read-all")
        assert result.exit_code == 0
        assert "Marked 1 alerts as read" in result.output

    def test_status_and_cleanup(self, runner: CliRunner, workspace: Path):
        self._fire_one(runner)
        result = invoke(runner, "monitor", "status")
        assert result.exit_code == 0
        assert "Active conditions" in result.output

        result = invoke(runner, "monitor", "cleanup")
        assert result.exit_code == 0
        assert DataStore(workspace).count_alerts() == 1

    def test_price_show(self, runner: CliRunner, workspace: Path):
        invoke(runner, "price", "set", "069500", "35000", "--name", "KODEX 200")
        result = invoke(runner, "price", "show", "069500")
        assert result.exit_code == 0
        assert "35000" in result.output
        assert invoke(runner, "price", "show", "229200").exit_code == 1
