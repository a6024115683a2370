"""
Address pattern analysis: accumulation, distribution, mixing, exchange flow.

Heuristics over two address profiles. The mixing rule is a weak signal
(many small recent transfers on a busy address), not a mixer detector.
Thresholds live in PatternConfig so tests and deployments can override them.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_whalewatch.analysis_engine.models import ExchangeFlow, TransactionPatterns
from backend_whalewatch.gateway.models import AddressProfile
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)

FLOW_RATIO = 1.5
MIXING_MIN_TX_COUNT = 100
MIXING_MIN_RECENT_TXS = 5
MIXING_SMALL_AMOUNT_BTC = 1.0


@dataclass(frozen=True)
class PatternConfig:
    """Thresholds for pattern rules."""

    # received > sent x ratio (accumulation) / sent > received x ratio (distribution)
    flow_ratio: float = FLOW_RATIO
    # Mixing: tx_count > this AND recent count > mixing_min_recent_txs AND all recent < small amount
    mixing_min_tx_count: int = MIXING_MIN_TX_COUNT
    mixing_min_recent_txs: int = MIXING_MIN_RECENT_TXS
    mixing_small_amount_btc: float = MIXING_SMALL_AMOUNT_BTC


def analyze_patterns(
    source: AddressProfile,
    destination: AddressProfile,
    config: PatternConfig | None = None,
) -> TransactionPatterns:
    cfg = config or PatternConfig()
    is_accumulation = destination.total_received > destination.total_sent * cfg.flow_ratio
    is_distribution = source.total_sent > source.total_received * cfg.flow_ratio
    recent = source.recent_transactions
    is_mixing = (
        source.transaction_count > cfg.mixing_min_tx_count
        and len(recent) > cfg.mixing_min_recent_txs
        and all(tx.amount < cfg.mixing_small_amount_btc for tx in recent)
    )
    # Destination checked first: exchange -> exchange resolves to deposit
    if destination.is_exchange:
        flow = ExchangeFlow.DEPOSIT
    elif source.is_exchange:
        flow = ExchangeFlow.WITHDRAWAL
    else:
        flow = ExchangeFlow.NONE
    patterns = TransactionPatterns(
        is_accumulation=is_accumulation,
        is_distribution=is_distribution,
        is_mixing=is_mixing,
        exchange_flow=flow,
    )
    logger.debug(
        "patterns_analyzed",
        source=source.address[:10],
        destination=destination.address[:10],
        **patterns.to_dict(),
    )
    return patterns
