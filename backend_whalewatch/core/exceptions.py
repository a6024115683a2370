"""
Application-level exceptions.

Gateway errors carry a classified type so callers can decide whether to retry;
job errors carry a code that is rendered into the failed job's message.
"""

from __future__ import annotations

from enum import Enum


class WhaleWatchError(Exception):
    """Base class for all service errors."""


class ConfigError(WhaleWatchError):
    """Required configuration is missing or malformed."""


class GatewayErrorType(str, Enum):
    RATE_LIMIT = "RATE_LIMIT"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    SERVER_ERROR = "SERVER_ERROR"
    UNKNOWN = "UNKNOWN"


RETRYABLE_GATEWAY_ERRORS = frozenset(
    {
        GatewayErrorType.RATE_LIMIT,
        GatewayErrorType.TIMEOUT,
        GatewayErrorType.NETWORK_ERROR,
        GatewayErrorType.SERVER_ERROR,
    }
)


def classify_status_code(status_code: int) -> GatewayErrorType:
    """Map a non-2xx HTTP status to a gateway error type."""
    if status_code == 429:
        return GatewayErrorType.RATE_LIMIT
    if status_code == 400:
        return GatewayErrorType.INVALID_ADDRESS
    if 500 <= status_code < 600:
        return GatewayErrorType.SERVER_ERROR
    return GatewayErrorType.UNKNOWN


class GatewayError(WhaleWatchError):
    """
    Upstream provider call failed.

    target is the address, block hash, or endpoint the call was about;
    status_code is set when the provider answered with a non-2xx status.
    """

    def __init__(
        self,
        error_type: GatewayErrorType,
        target: str,
        status_code: int | None = None,
        message: str | None = None,
    ) -> None:
        self.error_type = error_type
        self.target = target
        self.status_code = status_code
        super().__init__(message or f"Upstream API error: {error_type.value}")

    @property
    def retryable(self) -> bool:
        return self.error_type in RETRYABLE_GATEWAY_ERRORS


class JobErrorCode(str, Enum):
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    MODEL_CALL_FAILED = "MODEL_CALL_FAILED"
    RESPONSE_PARSE_FAILED = "RESPONSE_PARSE_FAILED"


class JobError(WhaleWatchError):
    """Worker-level failure; terminal for the job it happened in."""

    code = JobErrorCode.MODEL_CALL_FAILED

    def __init__(self, message: str) -> None:
        self.detail = message
        super().__init__(message)

    def to_job_message(self) -> str:
        """Human-readable message stored on the failed job."""
        return f"{self.code.value}: {self.detail}"


class ModelCallError(JobError):
    code = JobErrorCode.MODEL_CALL_FAILED


class ResponseParseError(JobError):
    code = JobErrorCode.RESPONSE_PARSE_FAILED
