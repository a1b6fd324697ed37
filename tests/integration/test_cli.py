"""
Integration tests for the candle command line.

Tests verify:
1. Scenario replay output
2. Rejected steps are reported, not fatal
3. JSON stats output
4. Phase timeline
5. Invalid scenario files
"""

import json

import pytest
from click.testing import CliRunner

from candle.cli.main import cli
from candle.crypto import derive_account
from candle.utils.logger import setup_logging


SCENARIO = {
    "auction": {
        "start_time": 1,
        "opening_duration": 5,
        "ending_duration": 5,
        "owner": "carol",
        "reward_reference": "collection",
    },
    "rf_delay": 2,
    "entropy": {"fixed": 1},
    "steps": [
        {"action": "bid", "who": "alice", "amount": 100, "at": 1},
        {"action": "bid", "who": "alice", "amount": 50, "at": 7},
        {"action": "bid", "who": "bob", "amount": 120, "at": 8},
        {"action": "status", "at": 9},
        {"action": "finalize", "at": 12},
        {"action": "finalize", "at": 13},
        {"action": "payout", "who": "alice", "at": 14},
        {"action": "payout", "who": "bob", "at": 14},
        {"action": "payout", "who": "carol", "at": 15},
        {"action": "payout", "who": "carol", "at": 16},
    ],
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CANDLE_RF_DELAY", "CANDLE_MAX_BALANCE", "CANDLE_LOG_LEVEL", "CANDLE_LOG_DIR"):
        monkeypatch.delenv(name, raising=False)
    yield
    setup_logging()


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def scenario_file(tmp_path):
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(SCENARIO))
    return path


class TestSimulate:

    def test_replays_scenario(self, runner, scenario_file):
        result = runner.invoke(cli, ["simulate", str(scenario_file)])

        assert result.exit_code == 0, result.output
        assert "+50 -> balance 150" in result.output
        assert "ENDING, winning alice (150)" in result.output
        assert "RandomnessNotReady" in result.output
        assert "sample 1, winner alice, amount 150" in result.output
        assert "refund 0, proceeds 0, prize granted" in result.output
        assert "refund 120, proceeds 0" in result.output
        assert "refund 0, proceeds 150" in result.output
        assert "AlreadyClaimed" in result.output
        assert "Steps: 10 (2 rejected)" in result.output
        assert "Winner: alice (sample 1, amount 150)" in result.output
        assert "Escrow: 0 of 270 deposited" in result.output

    def test_json_stats(self, runner, scenario_file):
        result = runner.invoke(cli, ["simulate", "--json", str(scenario_file)])

        assert result.exit_code == 0, result.output
        stats = json.loads(result.output[result.output.index("{"):])
        assert stats["winner"] == "alice"
        assert stats["winning_amount"] == 150
        assert stats["escrow_balance"] == 0
        assert stats["claimed"] == ["alice", "bob", "carol"]

    def test_addresses_flag(self, runner, scenario_file):
        result = runner.invoke(cli, ["--addresses", "simulate", "--json", str(scenario_file)])

        assert result.exit_code == 0, result.output
        stats = json.loads(result.output[result.output.index("{"):])
        assert stats["winner"] == derive_account("alice")
        assert stats["owner"] == derive_account("carol")

    def test_unresolved_auction(self, runner, tmp_path):
        scenario = dict(SCENARIO, steps=SCENARIO["steps"][:3])
        path = tmp_path / "open.json"
        path.write_text(json.dumps(scenario))

        result = runner.invoke(cli, ["simulate", str(path)])
        assert result.exit_code == 0, result.output
        assert "Winner: not resolved" in result.output

    def test_invalid_scenario(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"auction": {"start_time": 1}}))

        result = runner.invoke(cli, ["simulate", str(path)])
        assert result.exit_code != 0
        assert "Invalid scenario" in result.output

    def test_invalid_auction_config(self, runner, tmp_path):
        scenario = json.loads(json.dumps(SCENARIO))
        scenario["auction"]["ending_duration"] = 0
        path = tmp_path / "zero.json"
        path.write_text(json.dumps(scenario))

        result = runner.invoke(cli, ["simulate", str(path)])
        assert result.exit_code != 0
        assert "ending_duration" in result.output

    def test_bid_step_requires_amount(self, runner, tmp_path):
        scenario = dict(SCENARIO, steps=[{"action": "bid", "who": "alice", "at": 1}])
        path = tmp_path / "no_amount.json"
        path.write_text(json.dumps(scenario))

        result = runner.invoke(cli, ["simulate", str(path)])
        assert result.exit_code != 0

    def test_not_json(self, runner, tmp_path):
        path = tmp_path / "garbage.json"
        path.write_text("not json")

        result = runner.invoke(cli, ["simulate", str(path)])
        assert result.exit_code != 0
        assert "Cannot read scenario" in result.output


class TestTimeline:

    def test_phases_per_tick(self, runner, scenario_file):
        result = runner.invoke(cli, ["timeline", str(scenario_file)])

        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert lines[0].split() == ["0", "NOT_STARTED"]
        assert lines[1].split() == ["1", "OPENING"]
        assert lines[6].split() == ["6", "ENDING", "sample", "0"]
        assert lines[11].split() == ["11", "FINALIZING"]
        assert lines[-1].split() == ["13", "FINALIZING", "finalize", "allowed"]



class TestEnvironmentSettings:

    def test_log_dir_receives_log_file(self, runner, scenario_file, tmp_path, monkeypatch):
        log_dir = tmp_path / "logs"
        monkeypatch.setenv("CANDLE_LOG_DIR", str(log_dir))

        result = runner.invoke(cli, ["simulate", str(scenario_file)])

        assert result.exit_code == 0, result.output
        log_file = log_dir / "candle.log"
        assert log_file.exists()
        assert "Auction finalized: sample=1, winner=alice" in log_file.read_text()

    def test_log_level_filters_file(self, runner, scenario_file, tmp_path, monkeypatch):
        log_dir = tmp_path / "logs"
        monkeypatch.setenv("CANDLE_LOG_DIR", str(log_dir))
        monkeypatch.setenv("CANDLE_LOG_LEVEL", "error")

        result = runner.invoke(cli, ["simulate", str(scenario_file)])

        assert result.exit_code == 0, result.output
        assert "Auction finalized" not in (log_dir / "candle.log").read_text()

    def test_max_balance_applies(self, runner, scenario_file, monkeypatch):
        monkeypatch.setenv("CANDLE_MAX_BALANCE", "120")

        result = runner.invoke(cli, ["simulate", str(scenario_file)])

        assert result.exit_code == 0, result.output
        assert "+50 -> balance 150" not in result.output
        assert "Overflow" in result.output

    def test_rf_delay_from_environment(self, runner, tmp_path, monkeypatch):
        scenario = {k: v for k, v in SCENARIO.items() if k != "rf_delay"}
        scenario["steps"] = SCENARIO["steps"][:3] + [{"action": "finalize", "at": 11}]
        path = tmp_path / "no_delay.json"
        path.write_text(json.dumps(scenario))
        monkeypatch.setenv("CANDLE_RF_DELAY", "0")

        result = runner.invoke(cli, ["simulate", str(path)])

        assert result.exit_code == 0, result.output
        assert "sample 1, winner alice, amount 150" in result.output

    def test_scenario_rf_delay_wins(self, runner, scenario_file, monkeypatch):
        monkeypatch.setenv("CANDLE_RF_DELAY", "0")

        result = runner.invoke(cli, ["timeline", str(scenario_file)])

        assert result.exit_code == 0, result.output
        assert result.output.strip().splitlines()[-1].split()[0] == "13"

    def test_invalid_log_level(self, runner, scenario_file, monkeypatch):
        monkeypatch.setenv("CANDLE_LOG_LEVEL", "chatty")

        result = runner.invoke(cli, ["simulate", str(scenario_file)])
        assert result.exit_code != 0
        assert "CANDLE_LOG_LEVEL" in result.output

def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output
