"""
Ledger provider client: transactions, blocks, and address profiles.

Responsibilities:
- Fetch unconfirmed transactions, the latest block, block transactions, and
  address summaries from the blockchain.info raw API.
- Bound every call with an explicit timeout (httpx aborts the request).
- Classify failures (RATE_LIMIT, TIMEOUT, NETWORK_ERROR, INVALID_ADDRESS,
  SERVER_ERROR, UNKNOWN) and retry retryable ones with exponential backoff.
- Ingestion paths never raise: after retries are exhausted they log the
  classified error and return a safe default.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

import httpx

from backend_whalewatch.core.exceptions import GatewayError, GatewayErrorType, classify_status_code
from backend_whalewatch.gateway.known_entities import lookup_entity
from backend_whalewatch.gateway.models import (
    DIRECTION_INCOMING,
    DIRECTION_OUTGOING,
    AddressProfile,
    BlockHeader,
    KnownEntity,
    RecentTransaction,
    Transaction,
    satoshis_to_btc,
    short_id,
)
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://blockchain.info"
USER_AGENT = "BackendWhaleWatch/0.1"

# Per-call timeouts (seconds)
ADDRESS_TIMEOUT_SEC = 10.0
TRANSACTIONS_TIMEOUT_SEC = 10.0
BLOCK_TIMEOUT_SEC = 15.0

DEFAULT_MAX_RETRIES = 3
BACKOFF_BASE_SEC = 2.0
RECENT_TX_LIMIT = 10
VOLUME_WINDOW_SEC = 30 * 86400


def _tx_outputs(tx: dict[str, Any]) -> list[dict[str, Any]]:
    return [o for o in tx.get("out") or [] if isinstance(o, dict)]


def _tx_output_btc(tx: dict[str, Any]) -> float:
    return satoshis_to_btc(sum(int(o.get("value") or 0) for o in _tx_outputs(tx)))


def parse_address_profile(
    address: str,
    data: Any,
    *,
    now: float,
    known_entities: Mapping[str, KnownEntity] | None = None,
) -> AddressProfile:
    """
    Build an AddressProfile from a /rawaddr response.

    Totals are satoshi integers converted to BTC. volume_30d sums the output
    value of recent transactions newer than 30 days. A transaction is
    incoming when the address appears among its outputs.
    """
    if not isinstance(data, dict):
        raise GatewayError(
            GatewayErrorType.UNKNOWN, address, message="Invalid response data from ledger API"
        )
    txs = [t for t in data.get("txs") or [] if isinstance(t, dict)]
    cutoff = now - VOLUME_WINDOW_SEC
    volume_30d = sum(_tx_output_btc(t) for t in txs if int(t.get("time") or 0) > cutoff)
    recent = []
    for tx in txs[:RECENT_TX_LIMIT]:
        incoming = any(o.get("addr") == address for o in _tx_outputs(tx))
        recent.append(
            RecentTransaction(
                hash=str(tx.get("hash") or ""),
                time=datetime.fromtimestamp(int(tx.get("time") or 0), tz=timezone.utc).isoformat(),
                amount=_tx_output_btc(tx),
                direction=DIRECTION_INCOMING if incoming else DIRECTION_OUTGOING,
            )
        )
    return AddressProfile(
        address=address,
        total_received=satoshis_to_btc(data.get("total_received")),
        total_sent=satoshis_to_btc(data.get("total_sent")),
        balance=satoshis_to_btc(data.get("final_balance")),
        transaction_count=max(0, int(data.get("n_tx") or 0)),
        recent_transactions=tuple(recent),
        volume_30d=max(0.0, volume_30d),
        known_entity=lookup_entity(address, known_entities),
    )


def _parse_transactions(items: Any) -> list[Transaction]:
    out: list[Transaction] = []
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict):
            continue
        try:
            out.append(Transaction.from_raw(item))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.debug("gateway_skip_invalid_tx", error=str(e))
    return out


class BlockchainClient:
    """
    HTTP client for the ledger provider.

    Each request is bounded by its own timeout and retried up to max_retries
    times when the failure is retryable, sleeping 2**attempt seconds between
    attempts (1s, 2s, 4s ...).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        api_key: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        known_entities: Mapping[str, KnownEntity] | None = None,
    ) -> None:
        """
        Args:
            base_url: Provider root (e.g. https://blockchain.info).
            api_key: Optional provider key, sent as api_key query param.
            max_retries: Extra attempts after the first for retryable errors.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            sleep: Backoff sleep function.
            clock: Wall clock used for the 30-day volume window.
            known_entities: Override for the known-entity table.
        """
        if not base_url.strip():
            raise ValueError("base_url must be non-empty")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._max_retries = max_retries
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._known_entities = known_entities

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def _get_once(self, path: str, params: dict[str, Any], timeout: float, target: str) -> Any:
        """Single GET; raise GatewayError with a classified type on any failure."""
        if self._api_key:
            params = {**params, "api_key": self._api_key}
        try:
            with httpx.Client(
                transport=self._transport,
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            ) as client:
                resp = client.get(f"{self._base_url}{path}", params=params, timeout=timeout)
        except httpx.TimeoutException as e:
            raise GatewayError(GatewayErrorType.TIMEOUT, target, message=f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise GatewayError(
                GatewayErrorType.NETWORK_ERROR, target, message=f"Network error: {e}"
            ) from e
        if not resp.is_success:
            raise GatewayError(
                classify_status_code(resp.status_code),
                target,
                status_code=resp.status_code,
                message=f"Ledger API error: {resp.status_code}",
            )
        try:
            return resp.json()
        except ValueError as e:
            raise GatewayError(
                GatewayErrorType.UNKNOWN, target, status_code=resp.status_code, message="Invalid JSON from ledger API"
            ) from e

    def _request_json(
        self,
        path: str,
        *,
        target: str,
        timeout: float,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """GET with bounded retry. Raises the last GatewayError when retries are exhausted."""
        for attempt in range(self._max_retries + 1):
            try:
                return self._get_once(path, params or {}, timeout, target)
            except GatewayError as e:
                can_retry = e.retryable and attempt < self._max_retries
                logger.warning(
                    "gateway_request_failed",
                    path=path,
                    target=short_id(target),
                    error_type=e.error_type.value,
                    status_code=e.status_code,
                    retryable=e.retryable,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    error=str(e),
                )
                if not can_retry:
                    raise
                delay = BACKOFF_BASE_SEC**attempt
                logger.info("gateway_retry_backoff", path=path, delay_sec=delay, attempt=attempt + 1)
                self._sleep(delay)
        # Unreachable: the loop either returns or raises on its last attempt.
        raise GatewayError(GatewayErrorType.UNKNOWN, target)

    def fetch_unconfirmed_transactions(self) -> list[Transaction]:
        """Recent mempool transactions; [] when the provider is unavailable."""
        try:
            data = self._request_json(
                "/unconfirmed-transactions",
                target="unconfirmed-transactions",
                timeout=TRANSACTIONS_TIMEOUT_SEC,
                params={"format": "json"},
            )
        except GatewayError as e:
            logger.error("gateway_unconfirmed_unavailable", error_type=e.error_type.value, error=str(e))
            return []
        txs = _parse_transactions(data.get("txs") if isinstance(data, dict) else None)
        logger.info("gateway_unconfirmed_fetched", count=len(txs))
        return txs

    def fetch_latest_block(self) -> BlockHeader | None:
        """Latest block header; None when the provider is unavailable."""
        try:
            data = self._request_json("/latestblock", target="latestblock", timeout=TRANSACTIONS_TIMEOUT_SEC)
            return BlockHeader.from_raw(data)
        except GatewayError as e:
            logger.error("gateway_latest_block_unavailable", error_type=e.error_type.value, error=str(e))
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.error("gateway_latest_block_invalid", error=str(e))
            return None

    def fetch_block_transactions(self, block_hash: str) -> list[Transaction]:
        """All transactions of one block; [] when the provider is unavailable."""
        try:
            data = self._request_json(
                f"/rawblock/{block_hash}", target=block_hash, timeout=BLOCK_TIMEOUT_SEC
            )
        except GatewayError as e:
            logger.error(
                "gateway_block_unavailable",
                block_hash=short_id(block_hash),
                error_type=e.error_type.value,
                error=str(e),
            )
            return []
        txs = _parse_transactions(data.get("tx") if isinstance(data, dict) else None)
        logger.info("gateway_block_fetched", block_hash=short_id(block_hash), count=len(txs))
        return txs

    def fetch_address_profile(self, address: str) -> AddressProfile:
        """
        Address summary with the last RECENT_TX_LIMIT transactions.

        Raises:
            GatewayError: after retries are exhausted or on a non-retryable failure.
        """
        address = address.strip()
        if not address:
            raise GatewayError(GatewayErrorType.INVALID_ADDRESS, address, message="address must be non-empty")
        data = self._request_json(
            f"/rawaddr/{address}",
            target=address,
            timeout=ADDRESS_TIMEOUT_SEC,
            params={"limit": RECENT_TX_LIMIT},
        )
        try:
            profile = parse_address_profile(
                address, data, now=self._clock(), known_entities=self._known_entities
            )
        except (AttributeError, KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            raise GatewayError(
                GatewayErrorType.UNKNOWN, address, message=f"Malformed address data from ledger API: {e}"
            ) from e
        logger.info("gateway_address_fetched", address=short_id(address), tx_count=profile.transaction_count)
        return profile

    def fetch_address_profile_safe(self, address: str) -> AddressProfile:
        """fetch_address_profile that degrades to an empty profile instead of raising."""
        try:
            return self.fetch_address_profile(address)
        except GatewayError as e:
            logger.warning(
                "gateway_address_degraded",
                address=short_id(address),
                error_type=e.error_type.value,
                error=str(e),
            )
            return AddressProfile.empty(address)
