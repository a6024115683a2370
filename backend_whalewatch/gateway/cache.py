"""
Read-through TTL cache for address profiles.

Bounds upstream call volume: a profile fetched within the TTL window is
served from memory. Concurrent misses for the same key may both fetch;
the last writer wins, which is acceptable within the TTL window.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

from backend_whalewatch.gateway.models import AddressProfile, short_id
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SEC = 300.0


class AddressProfileCache:
    """Thread-safe address -> (profile, fetched_at) map with TTL."""

    def __init__(
        self,
        fetch: Callable[[str], AddressProfile],
        ttl_sec: float = DEFAULT_TTL_SEC,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            fetch: Upstream fetch; expected not to raise (e.g.
                BlockchainClient.fetch_address_profile_safe).
            ttl_sec: Entry lifetime in seconds.
            clock: Monotonic clock; injectable for tests.
        """
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be positive")
        self._fetch = fetch
        self._ttl = ttl_sec
        self._clock = clock
        self._store: dict[str, tuple[AddressProfile, float]] = {}
        self._lock = threading.Lock()

    def get_or_fetch(self, address: str) -> AddressProfile:
        now = self._clock()
        with self._lock:
            entry = self._store.get(address)
        if entry is not None:
            profile, fetched_at = entry
            if now - fetched_at < self._ttl:
                logger.debug("address_cache_hit", address=address[:10])
                return profile
        logger.debug("address_cache_miss", address=address[:10])
        profile = self._fetch(address)
        # Upstream call happens outside the lock; degraded results are cached too
        with self._lock:
            self._store[address] = (profile, self._clock())
        return profile

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
        logger.info("address_cache_cleared")

    def stats(self) -> dict[str, Any]:
        with self._lock:
            keys = list(self._store)
        return {"size": len(keys), "keys": [short_id(k) for k in keys]}
