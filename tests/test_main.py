"""CLI wiring tests; pipeline functions are replaced with fakes."""

from __future__ import annotations

import json
from decimal import Decimal

import pytest
from typer.testing import CliRunner

from defi_revenue.domain import ReferralEvent
from defi_revenue.main import app
from defi_revenue.pipeline import run as pipeline_run
from defi_revenue.protocols import Protocol
from defi_revenue.settings import Network

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    # _build_state exports --config paths; record the variable so it is restored
    monkeypatch.setenv("DEFI_REVENUE_CONFIG", str(tmp_path / "missing.toml"))
    monkeypatch.delenv("DEFI_REVENUE_LOG_LEVEL", raising=False)


def test_calculate_revenue_writes_csv(tmp_path, monkeypatch):
    seen = {}

    async def fake_run_revenue(state, protocol, addresses, start, end):
        seen.update(protocol=protocol, addresses=addresses, start=start, end=end)
        return [(a, Decimal("1.5")) for a in addresses]

    monkeypatch.setattr(pipeline_run, "run_revenue", fake_run_revenue)
    (tmp_path / "users.csv").write_text("0xa\n0xb\n", encoding="utf-8")

    result = runner.invoke(
        app,
        [
            "calculate-revenue",
            "-p",
            "Somm",
            "-i",
            "users.csv",
            "-o",
            "out.csv",
            "-s",
            "1704067200000",
            "-e",
            "1706745600000",
        ],
    )

    assert result.exit_code == 0, result.output
    assert seen["protocol"] is Protocol.SOMM
    assert seen["addresses"] == ["0xa", "0xb"]
    assert seen["start"].isoformat() == "2024-01-01T00:00:00+00:00"
    assert seen["end"].isoformat() == "2024-02-01T00:00:00+00:00"
    assert (tmp_path / "out.csv").read_text(encoding="utf-8").splitlines() == [
        "0xa,1.5",
        "0xb,1.5",
    ]


def test_calculate_revenue_writes_json(tmp_path, monkeypatch):
    async def fake_run_revenue(state, protocol, addresses, start, end):
        return [(addresses[0], {"base-mainnet": {"base-mainnet:0xw": "7"}})]

    monkeypatch.setattr(pipeline_run, "run_revenue", fake_run_revenue)
    (tmp_path / "users.csv").write_text("0xa\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["calculate-revenue", "-p", "beefy", "-i", "users.csv", "-o", "out.json",
         "-s", "0", "-e", "1000"],
    )

    assert result.exit_code == 0, result.output
    assert json.loads((tmp_path / "out.json").read_text(encoding="utf-8")) == [
        {"address": "0xa", "revenue": {"base-mainnet": {"base-mainnet:0xw": "7"}}}
    ]


def test_calculate_revenue_failure_exits_nonzero(tmp_path, monkeypatch):
    async def failing_run_revenue(state, protocol, addresses, start, end):
        raise RuntimeError("upstream down")

    monkeypatch.setattr(pipeline_run, "run_revenue", failing_run_revenue)
    (tmp_path / "users.csv").write_text("0xa\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["calculate-revenue", "-p", "somm", "-i", "users.csv", "-o", "out.csv",
         "-s", "0", "-e", "1000"],
    )

    assert result.exit_code == 1
    assert not (tmp_path / "out.csv").exists()


def test_calculate_revenue_rejects_unknown_protocol(tmp_path):
    (tmp_path / "users.csv").write_text("0xa\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["calculate-revenue", "-p", "uniswap", "-i", "users.csv", "-o", "out.csv",
         "-s", "0", "-e", "1000"],
    )

    assert result.exit_code == 2


def test_show_config_redacts_secrets(tmp_path, monkeypatch):
    monkeypatch.setenv("DEFI_REVENUE_ALCHEMY_KEY", "super-secret")
    (tmp_path / "users.csv").write_text("0xa\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["calculate-revenue", "-p", "somm", "-i", "users.csv", "-o", "out.csv",
         "-s", "0", "-e", "1000", "--show-config"],
    )

    assert result.exit_code == 0
    assert "super-secret" not in result.stdout
    assert json.loads(result.stdout)["alchemy_key"] == "***redacted***"


def test_fetch_referrals_passes_networks_and_filter_flag(tmp_path, monkeypatch):
    seen = {}

    async def fake_fetch(state, protocol, networks, *, apply_filter=True):
        seen.update(protocol=protocol, networks=networks, apply_filter=apply_filter)
        return [ReferralEvent("beefy", "0xa", "divvi", 100)]

    monkeypatch.setattr(pipeline_run, "run_fetch_referrals", fake_fetch)

    result = runner.invoke(
        app,
        ["fetch-referrals", "-p", "beefy", "-n", "celo-mainnet", "-n", "base-mainnet",
         "--no-filter", "-o", "refs.csv"],
    )

    assert result.exit_code == 0, result.output
    assert seen == {
        "protocol": Protocol.BEEFY,
        "networks": [Network.CELO, Network.BASE],
        "apply_filter": False,
    }
    assert (tmp_path / "refs.csv").read_text(encoding="utf-8").splitlines() == [
        "beefy,divvi,0xa,100"
    ]


def test_fetch_referrals_defaults_to_all_networks(tmp_path, monkeypatch):
    seen = {}

    async def fake_fetch(state, protocol, networks, *, apply_filter=True):
        seen.update(networks=networks, apply_filter=apply_filter)
        return []

    monkeypatch.setattr(pipeline_run, "run_fetch_referrals", fake_fetch)

    result = runner.invoke(app, ["fetch-referrals", "-p", "somm"])

    assert result.exit_code == 0, result.output
    assert seen == {"networks": list(Network), "apply_filter": True}
    assert (tmp_path / "filtered_referrals.csv").exists()


def test_filter_referrals_round_trip(tmp_path, monkeypatch):
    async def fake_filter(state, protocol, events):
        return [e for e in events if e.timestamp > 150]

    monkeypatch.setattr(pipeline_run, "run_filter", fake_filter)
    (tmp_path / "in.csv").write_text("0xa,100\n0xb,200\n", encoding="utf-8")

    result = runner.invoke(app, ["filter-referrals", "-p", "fonbnk", "-i", "in.csv"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "rewards_processed.csv").read_text(
        encoding="utf-8"
    ).splitlines() == ["0xb,200"]


def test_referrer_user_count_writes_counts(tmp_path, monkeypatch):
    seen = {}

    async def fake_count(state, protocol, networks, referrers=None):
        seen.update(protocol=protocol, networks=networks, referrers=referrers)
        return {"divvi": 3, "idle": 0}

    monkeypatch.setattr(pipeline_run, "run_referrer_user_count", fake_count)

    result = runner.invoke(
        app,
        ["referrer-user-count", "-p", "somm", "-o", "counts.csv",
         "-r", "divvi", "-r", "idle", "-n", "celo-mainnet"],
    )

    assert result.exit_code == 0, result.output
    assert seen == {
        "protocol": Protocol.SOMM,
        "networks": [Network.CELO],
        "referrers": ["divvi", "idle"],
    }
    assert (tmp_path / "counts.csv").read_text(encoding="utf-8").splitlines() == [
        "divvi,3",
        "idle,0",
    ]


def test_referrer_user_count_defaults_to_all_referrers(tmp_path, monkeypatch):
    seen = {}

    async def fake_count(state, protocol, networks, referrers=None):
        seen.update(networks=networks, referrers=referrers)
        return {}

    monkeypatch.setattr(pipeline_run, "run_referrer_user_count", fake_count)

    result = runner.invoke(app, ["referrer-user-count", "-p", "beefy", "-o", "c.csv"])

    assert result.exit_code == 0, result.output
    assert seen == {"networks": list(Network), "referrers": None}
