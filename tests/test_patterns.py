"""
Tests for address pattern analysis (accumulation, distribution, mixing,
exchange flow precedence).
"""

from __future__ import annotations

from backend_whalewatch.analysis_engine import PatternConfig, analyze_patterns
from backend_whalewatch.analysis_engine.models import ExchangeFlow
from backend_whalewatch.gateway.models import (
    DIRECTION_OUTGOING,
    ENTITY_EXCHANGE,
    AddressProfile,
    KnownEntity,
    RecentTransaction,
)


def _profile(address="1Plain", received=0.0, sent=0.0, tx_count=10, recent=(), exchange=None):
    return AddressProfile(
        address=address,
        total_received=received,
        total_sent=sent,
        transaction_count=tx_count,
        recent_transactions=tuple(recent),
        known_entity=KnownEntity(exchange, ENTITY_EXCHANGE) if exchange else None,
    )


def _recent(amounts):
    return [
        RecentTransaction(hash=f"t{i}", time="2024-01-01T00:00:00+00:00", amount=a, direction=DIRECTION_OUTGOING)
        for i, a in enumerate(amounts)
    ]


def test_distribution_and_accumulation_scenario():
    """Source sent 10 / received 2; destination received 2 / sent 0.1."""
    source = _profile("1Source", received=2.0, sent=10.0)
    destination = _profile("1Dest", received=2.0, sent=0.1)
    patterns = analyze_patterns(source, destination)
    assert patterns.is_distribution is True
    assert patterns.is_accumulation is True
    assert patterns.is_mixing is False
    assert patterns.exchange_flow == ExchangeFlow.NONE


def test_ratio_at_exactly_threshold_is_not_a_pattern():
    source = _profile(received=2.0, sent=3.0)
    destination = _profile(received=3.0, sent=2.0)
    patterns = analyze_patterns(source, destination)
    assert patterns.is_distribution is False
    assert patterns.is_accumulation is False


def test_mixing_requires_busy_address_with_many_small_transfers():
    busy_small = _profile(tx_count=150, recent=_recent([0.5] * 6))
    assert analyze_patterns(busy_small, _profile()).is_mixing is True

    one_large = _profile(tx_count=150, recent=_recent([0.5] * 5 + [1.0]))
    assert analyze_patterns(one_large, _profile()).is_mixing is False

    too_few_recent = _profile(tx_count=150, recent=_recent([0.5] * 5))
    assert analyze_patterns(too_few_recent, _profile()).is_mixing is False

    quiet = _profile(tx_count=100, recent=_recent([0.5] * 6))
    assert analyze_patterns(quiet, _profile()).is_mixing is False


def test_exchange_flow_precedence():
    exchange_a = _profile("3Kraken", exchange="Kraken")
    exchange_b = _profile("34Binance", exchange="Binance")
    plain = _profile()
    assert analyze_patterns(plain, exchange_b).exchange_flow == ExchangeFlow.DEPOSIT
    assert analyze_patterns(exchange_a, plain).exchange_flow == ExchangeFlow.WITHDRAWAL
    # Both exchanges: destination checked first
    assert analyze_patterns(exchange_a, exchange_b).exchange_flow == ExchangeFlow.DEPOSIT


def test_empty_profiles_yield_no_patterns():
    patterns = analyze_patterns(AddressProfile.empty("1A"), AddressProfile.empty("1B"))
    assert patterns.to_dict() == {
        "is_accumulation": False,
        "is_distribution": False,
        "is_mixing": False,
        "exchange_flow": "none",
    }


def test_analyze_patterns_is_deterministic():
    source = _profile("1Source", received=1.0, sent=9.0, tx_count=200, recent=_recent([0.1] * 8))
    destination = _profile("3Dest", received=5.0, sent=1.0, exchange="Kraken")
    assert analyze_patterns(source, destination) == analyze_patterns(source, destination)


def test_custom_config_overrides_thresholds():
    source = _profile(received=2.0, sent=3.0)
    config = PatternConfig(flow_ratio=1.2)
    assert analyze_patterns(source, _profile(), config).is_distribution is True
