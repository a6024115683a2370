"""
Whale detection and flow classification.

detect_whales scans a raw transaction batch and keeps transfers whose total
output clears the BTC threshold (inclusive). classify maps the (from, to)
exchange membership onto one of four flow types.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from backend_whalewatch.analysis_engine.models import Classification, WhaleTransaction, WhaleType
from backend_whalewatch.gateway.known_entities import is_exchange
from backend_whalewatch.gateway.models import SATOSHIS_PER_BTC, KnownEntity, Transaction
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)

UNKNOWN_ADDRESS = "unknown"

# (from is exchange, to is exchange) -> classification
FLOW_TABLE: dict[tuple[bool, bool], Classification] = {
    (False, True): Classification(
        WhaleType.EXCHANGE_DEPOSIT, "Large deposit to exchange - potential sell pressure"
    ),
    (True, False): Classification(
        WhaleType.EXCHANGE_WITHDRAWAL, "Large withdrawal from exchange - potential accumulation"
    ),
    (True, True): Classification(WhaleType.WHALE_TO_WHALE, "Exchange to exchange transfer"),
    (False, False): Classification(WhaleType.UNKNOWN, "Whale to whale transfer or OTC deal"),
}


def classify_flow(from_is_exchange: bool, to_is_exchange: bool) -> Classification:
    return FLOW_TABLE[(bool(from_is_exchange), bool(to_is_exchange))]


def classify(
    whale: WhaleTransaction,
    known_entities: Mapping[str, KnownEntity] | None = None,
) -> Classification:
    """Classify a whale by looking up both addresses in the known-entity table."""
    return classify_flow(
        is_exchange(whale.from_address, known_entities),
        is_exchange(whale.to_address, known_entities),
    )


def _primary_addresses(tx: Transaction) -> tuple[str, str]:
    """First input address as source; largest output address as destination."""
    from_address = next(iter(tx.input_addresses), UNKNOWN_ADDRESS)
    addressed = [o for o in tx.outputs if o.address]
    to_address = max(addressed, key=lambda o: o.value).address if addressed else UNKNOWN_ADDRESS
    return from_address, to_address or UNKNOWN_ADDRESS


def detect_whales(
    transactions: Iterable[Transaction],
    threshold_btc: float,
    current_price_usd: float,
    known_entities: Mapping[str, KnownEntity] | None = None,
) -> list[WhaleTransaction]:
    """
    Return classified WhaleTransactions for every transaction whose summed
    output is >= threshold_btc. Comparison is done in satoshis.
    """
    threshold_sat = round(threshold_btc * SATOSHIS_PER_BTC)
    whales: list[WhaleTransaction] = []
    scanned = 0
    for tx in transactions:
        scanned += 1
        total_sat = tx.total_output_satoshis
        if total_sat < threshold_sat:
            continue
        amount = tx.total_output_btc
        from_address, to_address = _primary_addresses(tx)
        flow = classify_flow(
            is_exchange(from_address, known_entities),
            is_exchange(to_address, known_entities),
        )
        whales.append(
            WhaleTransaction(
                tx_hash=tx.hash,
                amount=amount,
                amount_usd=amount * current_price_usd,
                from_address=from_address,
                to_address=to_address,
                timestamp=datetime.fromtimestamp(tx.timestamp, tz=timezone.utc).isoformat(),
                type=flow.type,
                description=flow.description,
            )
        )
    logger.info(
        "whales_detected",
        scanned=scanned,
        whale_count=len(whales),
        threshold_btc=threshold_btc,
        price_usd=current_price_usd,
    )
    return whales


def summarize_whales(whales: list[WhaleTransaction]) -> dict[str, Any]:
    """Batch totals for the dashboard summary."""
    by_type = {t: 0 for t in WhaleType}
    for w in whales:
        by_type[w.type] += 1
    return {
        "total_transactions": len(whales),
        "total_value_btc": sum(w.amount for w in whales),
        "total_value_usd": sum(w.amount_usd for w in whales),
        "largest_transaction_btc": max((w.amount for w in whales), default=0.0),
        "exchange_deposits": by_type[WhaleType.EXCHANGE_DEPOSIT],
        "exchange_withdrawals": by_type[WhaleType.EXCHANGE_WITHDRAWAL],
        "exchange_to_exchange": by_type[WhaleType.WHALE_TO_WHALE],
        "unknown_flows": by_type[WhaleType.UNKNOWN],
    }
