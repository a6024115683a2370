"""
Environment variable loading and parsing helpers.

- Loads .env from project root when available.
- Typed readers for numeric and boolean tunables: malformed or out-of-range
  values fall back to the default and produce a warning string instead of
  raising, so optional tunables never block startup.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_whalewatch/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

TRUE_VALUES = ("1", "true", "yes", "on")


def load_whalewatch_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides real env."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def get_str(env: Mapping[str, str], key: str, default: str) -> str:
    return (env.get(key) or "").strip() or default


def get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = (env.get(key) or "").strip().lower()
    if not raw:
        return default
    return raw in TRUE_VALUES


def get_int(
    env: Mapping[str, str],
    key: str,
    default: int,
    min_value: int,
    max_value: int,
    warnings: list[str],
) -> int:
    """
    Parse an integer tunable. Missing -> default silently; malformed or
    outside [min_value, max_value] -> default plus a warning.
    """
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        warnings.append(f'{key}="{raw}" is not an integer. Using default: {default}')
        return default
    if value < min_value or value > max_value:
        warnings.append(
            f'{key}="{raw}" is out of range ({min_value}-{max_value}). Using default: {default}'
        )
        return default
    return value


def get_float(
    env: Mapping[str, str],
    key: str,
    default: float,
    min_value: float,
    max_value: float,
    warnings: list[str],
) -> float:
    """Float variant of get_int; min_value is exclusive when it is 0."""
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        warnings.append(f'{key}="{raw}" is not a number. Using default: {default}')
        return default
    if not math.isfinite(value):
        warnings.append(f'{key}="{raw}" is not a finite number. Using default: {default}')
        return default
    too_low = value <= min_value if min_value == 0 else value < min_value
    if too_low or value > max_value:
        warnings.append(
            f'{key}="{raw}" is out of range ({min_value}-{max_value}). Using default: {default}'
        )
        return default
    return value


def current_env() -> Mapping[str, str]:
    """Process environment after loading .env."""
    load_whalewatch_env()
    return os.environ
