"""
Application settings and environment configuration.

Responsibilities:
- Load configuration from environment variables and .env files.
- Validate required settings (model API key) with descriptive errors.
- Fall back to defaults, with warnings, for malformed optional tunables.
- Expose typed settings for the gateway clients, worker, and API server.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from backend_whalewatch.config.env import current_env, get_bool, get_float, get_int, get_str
from backend_whalewatch.core.exceptions import ConfigError
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)

MODEL_FLASH = "gemini-2.5-flash"
MODEL_PRO = "gemini-2.5-pro"

# Gemini API keys start with "AIzaSy" and are 39 characters total
API_KEY_PATTERN = re.compile(r"^AIzaSy[A-Za-z0-9_-]{33}$")

DEFAULT_BLOCKCHAIN_API_URL = "https://blockchain.info"
DEFAULT_PRICE_API_URL = "https://api.coingecko.com/api/v3/simple/price"
DEFAULT_MODEL_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

DEFAULT_WHALE_THRESHOLD_BTC = 100.0
DEFAULT_PRO_THRESHOLD_BTC = 100
DEFAULT_MODEL_TIMEOUT_MS = 15_000
# Some tiers take up to 10 minutes; the ceiling allows that.
MAX_MODEL_TIMEOUT_MS = 600_000
DEFAULT_BLOCKCHAIN_MAX_RETRIES = 3
DEFAULT_ADDRESS_CACHE_TTL_SEC = 300.0
DEFAULT_WORKER_MAX_CONCURRENCY = 4


@dataclass(frozen=True)
class TierParams:
    """Generation parameters for one model tier."""

    temperature: float
    top_k: int
    top_p: float
    max_output_tokens: int


@dataclass(frozen=True)
class Settings:
    """Validated service configuration. Build with load_settings()."""

    model_api_key: str
    enable_thinking: bool = True
    pro_threshold_btc: float = DEFAULT_PRO_THRESHOLD_BTC
    model_timeout_sec: float = DEFAULT_MODEL_TIMEOUT_MS / 1000.0
    flash_params: TierParams = field(
        default_factory=lambda: TierParams(temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=8192)
    )
    pro_params: TierParams = field(
        default_factory=lambda: TierParams(temperature=0.8, top_k=64, top_p=0.95, max_output_tokens=32768)
    )
    whale_threshold_btc: float = DEFAULT_WHALE_THRESHOLD_BTC
    blockchain_max_retries: int = DEFAULT_BLOCKCHAIN_MAX_RETRIES
    blockchain_api_key: str | None = None
    blockchain_api_url: str = DEFAULT_BLOCKCHAIN_API_URL
    price_api_url: str = DEFAULT_PRICE_API_URL
    model_api_base_url: str = DEFAULT_MODEL_API_BASE_URL
    address_cache_ttl_sec: float = DEFAULT_ADDRESS_CACHE_TTL_SEC
    worker_max_concurrency: int = DEFAULT_WORKER_MAX_CONCURRENCY
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    def to_log_dict(self) -> dict[str, Any]:
        """Settings safe to log (no secrets)."""
        return {
            "enable_thinking": self.enable_thinking,
            "pro_threshold_btc": self.pro_threshold_btc,
            "model_timeout_sec": self.model_timeout_sec,
            "flash_max_tokens": self.flash_params.max_output_tokens,
            "pro_max_tokens": self.pro_params.max_output_tokens,
            "whale_threshold_btc": self.whale_threshold_btc,
            "blockchain_max_retries": self.blockchain_max_retries,
            "address_cache_ttl_sec": self.address_cache_ttl_sec,
            "worker_max_concurrency": self.worker_max_concurrency,
        }


def validate_api_key(api_key: str | None) -> bool:
    """True if api_key matches the provider key format."""
    if not api_key:
        return False
    return API_KEY_PATTERN.match(api_key) is not None


def _api_key_errors(api_key: str | None) -> list[str]:
    if not api_key:
        return [
            "GEMINI_API_KEY is missing. Get an API key from: https://aistudio.google.com/app/apikey"
        ]
    if not validate_api_key(api_key):
        return [
            'GEMINI_API_KEY has invalid format. Must start with "AIzaSy" and be 39 characters long.'
        ]
    return []


def _build(env: Mapping[str, str]) -> tuple[Settings | None, list[str], list[str]]:
    """Parse env into Settings; returns (settings or None, errors, warnings)."""
    warnings: list[str] = []
    api_key = (env.get("GEMINI_API_KEY") or "").strip() or None
    errors = _api_key_errors(api_key)

    pro_threshold = get_int(env, "GEMINI_PRO_THRESHOLD_BTC", DEFAULT_PRO_THRESHOLD_BTC, 1, 10_000, warnings)
    timeout_ms = get_int(
        env, "GEMINI_TIMEOUT_MS", DEFAULT_MODEL_TIMEOUT_MS, 1000, MAX_MODEL_TIMEOUT_MS, warnings
    )
    flash_tokens = get_int(env, "GEMINI_FLASH_MAX_OUTPUT_TOKENS", 8192, 1024, 65_536, warnings)
    pro_tokens = get_int(env, "GEMINI_PRO_MAX_OUTPUT_TOKENS", 32_768, 1024, 65_536, warnings)
    whale_threshold = get_float(
        env, "WHALE_THRESHOLD_BTC", DEFAULT_WHALE_THRESHOLD_BTC, 0, 21_000_000, warnings
    )
    blockchain_retries = get_int(
        env, "BLOCKCHAIN_MAX_RETRIES", DEFAULT_BLOCKCHAIN_MAX_RETRIES, 0, 10, warnings
    )
    cache_ttl = get_float(
        env, "ADDRESS_CACHE_TTL_SEC", DEFAULT_ADDRESS_CACHE_TTL_SEC, 0, 86_400, warnings
    )
    concurrency = get_int(
        env, "WORKER_MAX_CONCURRENCY", DEFAULT_WORKER_MAX_CONCURRENCY, 1, 64, warnings
    )
    api_port = get_int(env, "API_PORT", 8000, 1, 65_535, warnings)

    if errors:
        return None, errors, warnings
    settings = Settings(
        model_api_key=api_key or "",
        enable_thinking=get_bool(env, "GEMINI_ENABLE_THINKING", True),
        pro_threshold_btc=float(pro_threshold),
        model_timeout_sec=timeout_ms / 1000.0,
        flash_params=TierParams(temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=flash_tokens),
        pro_params=TierParams(temperature=0.8, top_k=64, top_p=0.95, max_output_tokens=pro_tokens),
        whale_threshold_btc=whale_threshold,
        blockchain_max_retries=blockchain_retries,
        blockchain_api_key=(env.get("BLOCKCHAIN_API_KEY") or "").strip() or None,
        blockchain_api_url=get_str(env, "BLOCKCHAIN_API_URL", DEFAULT_BLOCKCHAIN_API_URL),
        price_api_url=get_str(env, "PRICE_API_URL", DEFAULT_PRICE_API_URL),
        model_api_base_url=get_str(env, "MODEL_API_BASE_URL", DEFAULT_MODEL_API_BASE_URL),
        address_cache_ttl_sec=cache_ttl,
        worker_max_concurrency=concurrency,
        api_host=get_str(env, "API_HOST", "0.0.0.0"),
        api_port=api_port,
    )
    return settings, errors, warnings


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Load and validate settings from env (default: process environment + .env).

    Raises:
        ConfigError: GEMINI_API_KEY is missing or malformed.
    """
    source = current_env() if env is None else env
    settings, errors, warnings = _build(source)
    for warning in warnings:
        logger.warning("config_invalid_tunable", message=warning)
    if settings is None:
        raise ConfigError("; ".join(errors))
    logger.info("config_loaded", **settings.to_log_dict())
    return settings


def validate_settings_at_startup(env: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Validate configuration without raising.

    Returns:
        {"valid": bool, "errors": [...], "warnings": [...]}
    """
    source = current_env() if env is None else env
    _, errors, warnings = _build(source)
    return {"valid": not errors, "errors": errors, "warnings": warnings}


_settings: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Return process-wide settings, loading them on first call."""
    global _settings
    with _settings_lock:
        if _settings is None:
            _settings = load_settings()
        return _settings


def reset_settings() -> None:
    """Drop cached settings (tests, config reload)."""
    global _settings
    with _settings_lock:
        _settings = None
