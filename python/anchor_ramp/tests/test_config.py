"""Tests for environment-driven settings."""

import pytest

from anchor_ramp.config import DEFAULT_BLINDPAY_BASE_URL, RampSettings
from anchor_ramp.constants import STELLAR_TESTNET_CAIP2

ENV_VARS = (
    "ALFREDPAY_API_KEY",
    "ALFREDPAY_API_SECRET",
    "ALFREDPAY_BASE_URL",
    "BLINDPAY_API_KEY",
    "BLINDPAY_INSTANCE_ID",
    "BLINDPAY_BASE_URL",
    "BLINDPAY_NETWORK",
    "ETHERFUSE_API_KEY",
    "ETHERFUSE_BASE_URL",
    "STELLAR_NETWORK",
    "HORIZON_URL",
    "RAMP_POLL_INTERVAL_SECONDS",
    "RAMP_POLL_TIMEOUT_SECONDS",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        # setenv first so values loaded from a .env are removed on teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # Keep a developer's .env out of the tests.
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_defaults(clean_env, tmp_path):
    settings = RampSettings.from_env(tmp_path / "missing.env")

    assert not settings.alfredpay.configured
    assert not settings.blindpay.configured
    assert settings.blindpay.base_url == DEFAULT_BLINDPAY_BASE_URL
    assert settings.blindpay.network == "stellar_testnet"
    assert settings.stellar_network == STELLAR_TESTNET_CAIP2
    assert settings.horizon_url is None
    assert settings.poll_interval == 5.0


def test_reads_environment(clean_env, tmp_path):
    clean_env.setenv("BLINDPAY_API_KEY", "bp")
    clean_env.setenv("BLINDPAY_INSTANCE_ID", "in_1")
    clean_env.setenv("RAMP_POLL_TIMEOUT_SECONDS", "90")

    settings = RampSettings.from_env(tmp_path / "missing.env")

    assert settings.blindpay.configured
    assert settings.blindpay.instance_id == "in_1"
    assert settings.poll_timeout == 90.0


def test_reads_dotenv_file(clean_env, tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text("ETHERFUSE_API_KEY=ef-key\nSTELLAR_NETWORK=stellar:pubnet\n")

    settings = RampSettings.from_env(dotenv)

    assert settings.etherfuse.api_key == "ef-key"
    assert settings.stellar_network == "stellar:pubnet"


def test_rejects_non_numeric_poll_interval(clean_env, tmp_path):
    clean_env.setenv("RAMP_POLL_INTERVAL_SECONDS", "soon")

    with pytest.raises(ValueError, match="RAMP_POLL_INTERVAL_SECONDS"):
        RampSettings.from_env(tmp_path / "missing.env")
