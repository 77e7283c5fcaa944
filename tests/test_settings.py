"""Tests for settings configuration loading."""

from __future__ import annotations

from textwrap import dedent

import pytest
from pydantic import ValidationError

from defi_revenue.settings import Network, RevenueSettings


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in (
        "DEFI_REVENUE_CONFIG",
        "DEFI_REVENUE_LOG_LEVEL",
        "DEFI_REVENUE_REQUEST_TIMEOUT",
        "DEFI_REVENUE_ALCHEMY_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = RevenueSettings()

    assert settings.request_timeout == 15.0
    assert settings.max_retries == 5
    assert settings.block_chunk_size == 10_000
    assert settings.log_level == "INFO"
    assert settings.hypersync_url_template == "https://{chain_id}.hypersync.xyz"


def test_toml_values_are_loaded(tmp_path, monkeypatch):
    config_path = tmp_path / "custom.toml"
    config_path.write_text(
        dedent(
            """
            [defi_revenue]
            request_timeout = 30
            block_chunk_size = 500
            log_level = "debug"

            [defi_revenue.registry_addresses]
            celo-mainnet = "0x5a1a1027aC1d828E7415AF7d797FBA2B0cDD5575"

            [defi_revenue.rpc_urls]
            base-mainnet = "https://base.example"
            """
        ).strip()
    )
    monkeypatch.setenv("DEFI_REVENUE_CONFIG", str(config_path))

    settings = RevenueSettings()

    assert settings.request_timeout == 30
    assert settings.block_chunk_size == 500
    assert settings.log_level == "DEBUG"
    assert settings.registry_addresses == {
        Network.CELO: "0x5a1a1027aC1d828E7415AF7d797FBA2B0cDD5575"
    }
    assert settings.rpc_urls[Network.BASE] == "https://base.example"


def test_local_config_file_is_discovered(tmp_path):
    (tmp_path / "defi-revenue.toml").write_text("max_retries = 2\n")

    assert RevenueSettings().max_retries == 2


def test_precedence_cli_over_env_over_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text("request_timeout = 10\nmax_retries = 1\nrpc_delay = 0.5\n")
    monkeypatch.setenv("DEFI_REVENUE_CONFIG", str(config_path))
    monkeypatch.setenv("DEFI_REVENUE_REQUEST_TIMEOUT", "20")
    monkeypatch.setenv("DEFI_REVENUE_MAX_RETRIES", "3")

    settings = RevenueSettings(max_retries=4)

    assert settings.request_timeout == 20
    assert settings.max_retries == 4
    assert settings.rpc_delay == 0.5


def test_secrets_in_toml_are_rejected(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text('the_graph_api_key = "leaked"\n')
    monkeypatch.setenv("DEFI_REVENUE_CONFIG", str(config_path))

    with pytest.raises(ValueError, match="Security violation"):
        RevenueSettings()


def test_secrets_are_redacted():
    settings = RevenueSettings(alchemy_key="abc", fonbnk_client_secret="s3cret")

    dumped = settings.as_safe_dict()

    assert dumped["alchemy_key"] == "***redacted***"
    assert dumped["fonbnk_client_secret"] == "***redacted***"
    assert dumped["hypersync_api_token"] is None
    assert settings.secret_value("alchemy_key") == "abc"
    assert settings.secret_value("the_graph_api_key") is None


def test_invalid_log_level_rejected():
    with pytest.raises(ValidationError):
        RevenueSettings(log_level="chatty")


def test_trace_log_level_accepted():
    assert RevenueSettings(log_level="trace").log_level == "TRACE"


def test_non_positive_timeout_rejected():
    with pytest.raises(ValidationError):
        RevenueSettings(request_timeout=0)
