"""
Tests for configuration loading: required API key validation, defaults,
and warn-and-default behavior for malformed optional tunables.
"""

from __future__ import annotations

import pytest

from backend_whalewatch.config import get_settings, load_settings, reset_settings, validate_settings_at_startup
from backend_whalewatch.config.settings import validate_api_key
from backend_whalewatch.core.exceptions import ConfigError


def test_missing_api_key_raises():
    with pytest.raises(ConfigError, match="GEMINI_API_KEY is missing"):
        load_settings(env={})


def test_malformed_api_key_raises():
    with pytest.raises(ConfigError, match="invalid format"):
        load_settings(env={"GEMINI_API_KEY": "sk-not-a-gemini-key"})


def test_validate_api_key(api_key):
    assert validate_api_key(api_key) is True
    assert validate_api_key(api_key + "x") is False
    assert validate_api_key("") is False
    assert validate_api_key(None) is False


def test_defaults(api_key):
    s = load_settings(env={"GEMINI_API_KEY": api_key})
    assert s.enable_thinking is True
    assert s.pro_threshold_btc == 100
    assert s.model_timeout_sec == 15.0
    assert s.flash_params.temperature == 0.7
    assert s.flash_params.top_k == 40
    assert s.flash_params.max_output_tokens == 8192
    assert s.pro_params.temperature == 0.8
    assert s.pro_params.top_k == 64
    assert s.pro_params.max_output_tokens == 32768
    assert s.whale_threshold_btc == 100.0
    assert s.blockchain_max_retries == 3
    assert s.address_cache_ttl_sec == 300.0
    assert s.worker_max_concurrency == 4
    assert s.api_port == 8000


def test_valid_overrides(api_key):
    s = load_settings(
        env={
            "GEMINI_API_KEY": api_key,
            "GEMINI_ENABLE_THINKING": "false",
            "GEMINI_PRO_THRESHOLD_BTC": "250",
            "GEMINI_TIMEOUT_MS": "120000",
            "GEMINI_PRO_MAX_OUTPUT_TOKENS": "65536",
            "WHALE_THRESHOLD_BTC": "50.5",
            "BLOCKCHAIN_MAX_RETRIES": "0",
        }
    )
    assert s.enable_thinking is False
    assert s.pro_threshold_btc == 250
    assert s.model_timeout_sec == 120.0
    assert s.pro_params.max_output_tokens == 65536
    assert s.whale_threshold_btc == 50.5
    assert s.blockchain_max_retries == 0


@pytest.mark.parametrize(
    "key,value",
    [
        ("GEMINI_PRO_THRESHOLD_BTC", "0"),
        ("GEMINI_PRO_THRESHOLD_BTC", "lots"),
        ("GEMINI_TIMEOUT_MS", "999"),
        ("GEMINI_FLASH_MAX_OUTPUT_TOKENS", "100000"),
        ("WHALE_THRESHOLD_BTC", "-1"),
        ("WHALE_THRESHOLD_BTC", "nan"),
        ("ADDRESS_CACHE_TTL_SEC", "NaN"),
        ("ADDRESS_CACHE_TTL_SEC", "inf"),
        ("WORKER_MAX_CONCURRENCY", "0"),
    ],
)
def test_malformed_tunable_warns_and_uses_default(api_key, key, value):
    env = {"GEMINI_API_KEY": api_key, key: value}
    report = validate_settings_at_startup(env)
    assert report["valid"] is True
    assert len(report["warnings"]) == 1
    assert key in report["warnings"][0]
    assert load_settings(env) == load_settings({"GEMINI_API_KEY": api_key})


def test_validate_settings_at_startup_reports_errors_without_raising():
    report = validate_settings_at_startup({"GEMINI_PRO_THRESHOLD_BTC": "abc"})
    assert report["valid"] is False
    assert len(report["errors"]) == 1
    assert len(report["warnings"]) == 1


def test_get_settings_reads_process_env_and_caches(monkeypatch):
    monkeypatch.setenv("WHALE_THRESHOLD_BTC", "75")
    first = get_settings()
    assert first.whale_threshold_btc == 75.0
    monkeypatch.setenv("WHALE_THRESHOLD_BTC", "80")
    assert get_settings() is first
    reset_settings()
    assert get_settings().whale_threshold_btc == 80.0


def test_get_settings_raises_without_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY")
    with pytest.raises(ConfigError):
        get_settings()


def test_log_dict_has_no_secrets(api_key):
    s = load_settings(env={"GEMINI_API_KEY": api_key, "BLOCKCHAIN_API_KEY": "ledger-secret"})
    rendered = repr(s.to_log_dict())
    assert api_key not in rendered
    assert "ledger-secret" not in rendered
