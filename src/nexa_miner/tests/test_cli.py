import sys

from accounting import TokenStore
from common import settings as common_settings
from nexa_miner.cli import build_parser, logout, parse_args


def test_run_defaults_to_dashboard_and_launching():
    args = build_parser().parse_args(["run"])
    assert args.command == "run"
    assert args.show_dashboard is True
    assert args.monitor_only is False


def test_run_flags():
    args = build_parser().parse_args(
        ["--worker", "rig_9", "run", "--monitor-only", "--no-dashboard", "--metrics-port", "9100"]
    )
    assert args.worker == "rig_9"
    assert args.monitor_only is True
    assert args.show_dashboard is False
    assert args.metrics_port == 9100


def test_withdraw_requires_amount_and_destination():
    args = build_parser().parse_args(["withdraw", "--amount", "150", "--to", "nexa:dest"])
    assert args.amount == 150.0
    assert args.to_address == "nexa:dest"


def test_bare_invocation_runs_and_ignores_process_argv(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["nexa-miner", "balance"])
    args = parse_args([])
    assert args.command == "run"
    assert args.show_dashboard is True


def test_logout_clears_stored_token(tmp_path, monkeypatch):
    monkeypatch.setattr(common_settings, "TOKEN_STORE_PATH", tmp_path / "auth.json")
    TokenStore().save("stale")
    assert logout() == 0
    assert TokenStore().load() is None
