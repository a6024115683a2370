"""
Deep-dive enrichment for one whale: both address profiles plus patterns.

Fetches source and destination profiles in parallel under a tight overall
budget. Any address that fails or is late degrades to an empty profile and
is reported in errors/limitations; the analysis always proceeds.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

from backend_whalewatch.analysis_engine.models import TransactionPatterns
from backend_whalewatch.analysis_engine.patterns import PatternConfig, analyze_patterns
from backend_whalewatch.core.exceptions import GatewayError, GatewayErrorType
from backend_whalewatch.gateway.models import AddressProfile
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)

# Tight budget so a request handler can still answer in time
DEEP_DIVE_BUDGET_SEC = 5.0

_ERROR_LIMITATIONS = {
    GatewayErrorType.RATE_LIMIT: "Ledger API rate limit reached - some data may be incomplete",
    GatewayErrorType.TIMEOUT: "Blockchain data fetch timed out - analysis based on available information",
    GatewayErrorType.NETWORK_ERROR: "Network connectivity issues - blockchain data may be incomplete",
}


@dataclass
class DeepDiveError:
    address: str
    error_type: GatewayErrorType
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"address": self.address, "error_type": self.error_type.value, "message": self.message}


@dataclass
class DeepDiveResult:
    source: AddressProfile
    destination: AddressProfile
    patterns: TransactionPatterns
    success: bool
    errors: list[DeepDiveError] = field(default_factory=list)
    limitations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_address": self.source.to_dict(),
            "destination_address": self.destination.to_dict(),
            "patterns": self.patterns.to_dict(),
            "success": self.success,
            "errors": [e.to_dict() for e in self.errors],
            "data_source_limitations": self.limitations,
        }


def _resolve(
    address: str,
    future: Future[AddressProfile],
    done: set[Future[AddressProfile]],
    errors: list[DeepDiveError],
) -> AddressProfile:
    if future not in done:
        future.cancel()
        errors.append(DeepDiveError(address, GatewayErrorType.TIMEOUT, "Address fetch exceeded deep-dive budget"))
        return AddressProfile.empty(address)
    try:
        return future.result()
    except GatewayError as e:
        errors.append(DeepDiveError(address, e.error_type, str(e)))
    except Exception as e:
        errors.append(DeepDiveError(address, GatewayErrorType.UNKNOWN, str(e)))
    return AddressProfile.empty(address)


def fetch_deep_dive(
    from_address: str,
    to_address: str,
    fetch: Callable[[str], AddressProfile],
    *,
    budget_sec: float = DEEP_DIVE_BUDGET_SEC,
    pattern_config: PatternConfig | None = None,
) -> DeepDiveResult:
    """
    Fetch both profiles (usually via AddressProfileCache.get_or_fetch) and
    analyze patterns, degrading per address instead of failing.
    """
    errors: list[DeepDiveError] = []
    executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="deep-dive")
    try:
        source_future = executor.submit(fetch, from_address)
        dest_future = executor.submit(fetch, to_address)
        done, _ = wait([source_future, dest_future], timeout=budget_sec)
        source = _resolve(from_address, source_future, done, errors)
        destination = _resolve(to_address, dest_future, done, errors)
    finally:
        # Late fetches are bounded by their own HTTP timeout; do not wait for them here
        executor.shutdown(wait=False, cancel_futures=True)

    limitations: list[str] = []
    if source.is_empty:
        limitations.append(f"Source address ({from_address[:10]}...) blockchain data unavailable")
    if destination.is_empty:
        limitations.append(f"Destination address ({to_address[:10]}...) blockchain data unavailable")
    for error_type in dict.fromkeys(e.error_type for e in errors):
        if error_type in _ERROR_LIMITATIONS:
            limitations.append(_ERROR_LIMITATIONS[error_type])

    patterns = analyze_patterns(source, destination, pattern_config)
    success = not source.is_empty and not destination.is_empty and not errors
    if success:
        logger.info("deep_dive_complete", source=from_address[:10], destination=to_address[:10])
    else:
        logger.warning(
            "deep_dive_degraded",
            source=from_address[:10],
            destination=to_address[:10],
            limitation_count=len(limitations),
            error_count=len(errors),
        )
    return DeepDiveResult(
        source=source,
        destination=destination,
        patterns=patterns,
        success=success,
        errors=errors,
        limitations=limitations,
    )
