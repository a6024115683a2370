"""
Configuration management for the Backend Whale Watch service.

Loads and validates settings from environment variables and an optional
.env file. Exposes a single source of truth for all service configuration.
"""

from backend_whalewatch.config.settings import (  # noqa: F401
    Settings,
    get_settings,
    load_settings,
    reset_settings,
    validate_settings_at_startup,
)

__all__ = [
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "validate_settings_at_startup",
]
