"""
Tests for fetch_deep_dive: parallel profile fetch with per-address degradation.
"""

from __future__ import annotations

import threading

from backend_whalewatch.analysis_engine.deep_dive import fetch_deep_dive
from backend_whalewatch.analysis_engine.models import ExchangeFlow
from backend_whalewatch.core.exceptions import GatewayError, GatewayErrorType
from backend_whalewatch.gateway.models import ENTITY_EXCHANGE, AddressProfile, KnownEntity

SOURCE = "1SourceAddressXXXXXXXXXXXXXXXXXX"
DEST = "3DestinationAddressXXXXXXXXXXXXXX"


def _profile(address: str, **kwargs) -> AddressProfile:
    kwargs.setdefault("transaction_count", 12)
    return AddressProfile(address=address, **kwargs)


def test_both_profiles_available():
    profiles = {
        SOURCE: _profile(SOURCE, total_sent=10.0, total_received=2.0),
        DEST: _profile(DEST, known_entity=KnownEntity("Kraken", ENTITY_EXCHANGE)),
    }
    result = fetch_deep_dive(SOURCE, DEST, profiles.__getitem__)
    assert result.success is True
    assert result.errors == []
    assert result.limitations == []
    assert result.patterns.is_distribution is True
    assert result.patterns.exchange_flow == ExchangeFlow.DEPOSIT
    body = result.to_dict()
    assert body["source_address"]["address"] == SOURCE
    assert body["data_source_limitations"] == []


def test_failed_fetch_degrades_to_empty_profile():
    def fetch(address):
        if address == DEST:
            raise GatewayError(GatewayErrorType.RATE_LIMIT, address, status_code=429)
        return _profile(address)

    result = fetch_deep_dive(SOURCE, DEST, fetch)
    assert result.success is False
    assert result.destination.is_empty
    assert [e.error_type for e in result.errors] == [GatewayErrorType.RATE_LIMIT]
    assert f"Destination address ({DEST[:10]}...) blockchain data unavailable" in result.limitations
    assert any("rate limit" in l for l in result.limitations)
    assert result.to_dict()["errors"][0]["error_type"] == "RATE_LIMIT"


def test_empty_profile_from_safe_fetch_is_reported_as_limitation():
    result = fetch_deep_dive(SOURCE, DEST, AddressProfile.empty)
    assert result.success is False
    assert result.errors == []
    assert len(result.limitations) == 2


def test_late_fetch_times_out_within_budget():
    release = threading.Event()

    def fetch(address):
        if address == SOURCE:
            release.wait(5.0)
        return _profile(address)

    try:
        result = fetch_deep_dive(SOURCE, DEST, fetch, budget_sec=0.05)
    finally:
        release.set()
    assert result.source.is_empty
    assert not result.destination.is_empty
    assert [e.error_type for e in result.errors] == [GatewayErrorType.TIMEOUT]
    assert any("timed out" in l for l in result.limitations)
