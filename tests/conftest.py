"""
Pytest fixtures for Whale Watch tests.

Every test runs with an isolated environment (no real .env, a valid model API
key), fresh settings, and a fresh job store.
"""

from __future__ import annotations

import pytest

VALID_API_KEY = "AIzaSy" + "A1b2C3d4E5" * 3 + "xyz"

WHALEWATCH_ENV_VARS = (
    "GEMINI_API_KEY",
    "GEMINI_ENABLE_THINKING",
    "GEMINI_PRO_THRESHOLD_BTC",
    "GEMINI_TIMEOUT_MS",
    "GEMINI_FLASH_MAX_OUTPUT_TOKENS",
    "GEMINI_PRO_MAX_OUTPUT_TOKENS",
    "WHALE_THRESHOLD_BTC",
    "BLOCKCHAIN_MAX_RETRIES",
    "BLOCKCHAIN_API_KEY",
    "BLOCKCHAIN_API_URL",
    "ADDRESS_CACHE_TTL_SEC",
    "WORKER_MAX_CONCURRENCY",
    "PRICE_API_URL",
    "MODEL_API_BASE_URL",
    "API_HOST",
    "API_PORT",
)


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Clear service env vars, ignore any real .env, reset singletons."""
    import backend_whalewatch.config.env as env_module
    from backend_whalewatch.config import reset_settings
    from backend_whalewatch.jobs import reset_job_store

    for key in WHALEWATCH_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(env_module, "_ENV_PATH", tmp_path / ".env")
    monkeypatch.setenv("GEMINI_API_KEY", VALID_API_KEY)
    reset_settings()
    reset_job_store()
    yield
    reset_settings()
    reset_job_store()


@pytest.fixture
def api_key():
    return VALID_API_KEY


@pytest.fixture
def settings():
    """Settings with defaults and a valid key."""
    from backend_whalewatch.config import load_settings

    return load_settings(env={"GEMINI_API_KEY": VALID_API_KEY})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Recorded backoff delays; pass sleeps.append as the sleep function."""
    return []
