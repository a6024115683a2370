"""
Structured logging for the whale watch service.

Every record carries event_type, level, timestamp and logger name, plus
whatever context the caller binds (job_id, address, error_type, attempt).
Bitcoin addresses and transaction hashes are shortened to a 10-character
prefix; secret-looking keys are redacted before rendering.

Imports nothing from backend_whalewatch so any module can log at import time.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# json (default) or console
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

SHORTENED_KEYS = frozenset({"address", "from_address", "to_address", "source", "destination", "tx_hash"})
REDACTED_KEYS = frozenset({"api_key", "key", "model_api_key", "blockchain_api_key"})
SHORT_PREFIX_LEN = 10


def _add_timestamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog's positional 'event' becomes event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def _shorten_identifiers(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in SHORTENED_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > SHORT_PREFIX_LEN and not value.endswith("..."):
            event_dict[key] = value[:SHORT_PREFIX_LEN] + "..."
    return event_dict


def _redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in REDACTED_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def configure_structlog(log_format: str = LOG_FORMAT, level: int = LOG_LEVEL_VALUE) -> None:
    """(Re)configure structlog; called once on import."""
    renderer: Any
    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            _add_timestamp,
            _event_type,
            _shorten_identifiers,
            _redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Structured logger for a module:

        logger = get_logger(__name__)
        logger.warning("gateway_request_failed", address=addr, error_type="RATE_LIMIT", attempt=2)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_job(job_id: str) -> structlog.BoundLogger:
    """Logger with job_id bound, for everything that happens to one analysis job."""
    return get_logger("backend_whalewatch.jobs").bind(job_id=job_id)
