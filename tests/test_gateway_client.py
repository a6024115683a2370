"""
Tests for the ledger gateway client: error classification, bounded retry with
backoff, safe defaults at the ingestion boundary, and address profile parsing.

Uses httpx.MockTransport; no network.
"""

from __future__ import annotations

import httpx
import pytest

from backend_whalewatch.core.exceptions import GatewayError, GatewayErrorType, classify_status_code
from backend_whalewatch.gateway.client import BlockchainClient, parse_address_profile
from backend_whalewatch.gateway.models import DIRECTION_INCOMING, DIRECTION_OUTGOING

BASE_URL = "https://ledger.test"
KRAKEN = "3FupZp77ySr7jwoLYEJ9mwzJpvoNBXsBnE"
NOW = 1_700_000_000

RAW_TX = {
    "hash": "aa" * 32,
    "time": NOW,
    "inputs": [{"prev_out": {"addr": "1SourceAddr", "value": 150_000_000}}],
    "out": [
        {"addr": "1DestAddr", "value": 100_000_000},
        {"addr": "1ChangeAddr", "value": 49_000_000},
    ],
}


def _client(handler, sleeps, **kwargs) -> BlockchainClient:
    return BlockchainClient(
        BASE_URL,
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
        clock=lambda: float(NOW),
        **kwargs,
    )


@pytest.mark.parametrize(
    "status,expected",
    [
        (429, GatewayErrorType.RATE_LIMIT),
        (400, GatewayErrorType.INVALID_ADDRESS),
        (500, GatewayErrorType.SERVER_ERROR),
        (503, GatewayErrorType.SERVER_ERROR),
        (404, GatewayErrorType.UNKNOWN),
    ],
)
def test_classify_status_code(status, expected):
    assert classify_status_code(status) == expected


def test_retryable_error_exhausts_retries_then_returns_empty_list(sleeps):
    """503 on every attempt: 1 + 3 retries, strictly increasing delays, [] returned."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    client = _client(handler, sleeps)
    assert client.fetch_unconfirmed_transactions() == []
    assert len(calls) == 4
    assert sleeps == [1.0, 2.0, 4.0]
    assert all(a < b for a, b in zip(sleeps, sleeps[1:]))


def test_rate_limit_then_success(sleeps):
    """A 429 is retried once and the second response is used."""
    responses = iter([httpx.Response(429), httpx.Response(200, json={"txs": [RAW_TX]})])

    client = _client(lambda request: next(responses), sleeps)
    txs = client.fetch_unconfirmed_transactions()
    assert len(txs) == 1
    assert txs[0].total_output_satoshis == 149_000_000
    assert txs[0].input_addresses == ["1SourceAddr"]
    assert sleeps == [1.0]


def test_invalid_address_is_not_retried(sleeps):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, text="Invalid address")

    client = _client(handler, sleeps)
    with pytest.raises(GatewayError) as exc_info:
        client.fetch_address_profile("not-an-address")
    assert exc_info.value.error_type == GatewayErrorType.INVALID_ADDRESS
    assert exc_info.value.status_code == 400
    assert exc_info.value.retryable is False
    assert len(calls) == 1
    assert sleeps == []


def test_timeout_is_classified_and_retried(sleeps):
    def handler(request):
        raise httpx.ReadTimeout("slow upstream", request=request)

    client = _client(handler, sleeps, max_retries=2)
    with pytest.raises(GatewayError) as exc_info:
        client.fetch_address_profile(KRAKEN)
    assert exc_info.value.error_type == GatewayErrorType.TIMEOUT
    assert sleeps == [1.0, 2.0]


def test_network_error_degrades_to_empty_profile(sleeps):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler, sleeps, max_retries=1)
    profile = client.fetch_address_profile_safe(KRAKEN)
    assert profile.is_empty
    assert profile.address == KRAKEN
    assert profile.total_received == 0.0
    assert profile.known_entity is None
    assert sleeps == [1.0]


def test_zero_retries_means_single_attempt(sleeps):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    client = _client(handler, sleeps, max_retries=0)
    assert client.fetch_block_transactions("00" * 32) == []
    assert len(calls) == 1
    assert sleeps == []


def test_latest_block_and_block_transactions(sleeps):
    def handler(request):
        if request.url.path == "/latestblock":
            return httpx.Response(200, json={"hash": "bb" * 32, "height": 820000, "time": NOW, "txIndexes": [1, 2]})
        assert request.url.path == f"/rawblock/{'bb' * 32}"
        return httpx.Response(200, json={"tx": [RAW_TX, {"bad": "item"}]})

    client = _client(handler, sleeps)
    block = client.fetch_latest_block()
    assert block is not None
    assert block.height == 820000
    assert block.tx_indexes == (1, 2)
    txs = client.fetch_block_transactions(block.hash)
    assert [t.hash for t in txs] == ["aa" * 32]


def test_transactions_with_non_object_inputs_or_outputs_are_tolerated(sleeps):
    """Null entries inside inputs/out are skipped; the rest of the batch survives."""
    odd_inputs = {"hash": "b", "time": NOW, "inputs": [None, {"prev_out": None}], "out": [{"addr": "1X", "value": 5}]}
    odd_outputs = {"hash": "c", "time": NOW, "inputs": [], "out": [None, "junk", {"addr": "1Y", "value": 7}]}

    client = _client(lambda request: httpx.Response(200, json={"txs": [odd_inputs, odd_outputs, RAW_TX]}), sleeps)
    txs = client.fetch_unconfirmed_transactions()
    assert [t.hash for t in txs] == ["b", "c", "aa" * 32]
    assert txs[0].inputs == ()
    assert txs[1].total_output_satoshis == 7
    assert txs[2].total_output_btc == 1.49


def test_malformed_address_body_is_a_gateway_error(sleeps):
    """A /rawaddr body with a non-numeric field is UNKNOWN, and the safe variant degrades."""
    client = _client(lambda request: httpx.Response(200, json={"n_tx": "many", "txs": []}), sleeps)

    with pytest.raises(GatewayError) as exc_info:
        client.fetch_address_profile(KRAKEN)
    assert exc_info.value.error_type == GatewayErrorType.UNKNOWN

    profile = client.fetch_address_profile_safe(KRAKEN)
    assert profile.is_empty
    assert profile.address == KRAKEN
    assert sleeps == []


def test_address_body_with_null_outputs_parses(sleeps):
    body = {"n_tx": 1, "txs": [{"hash": "t1", "time": NOW, "out": [None, {"addr": KRAKEN, "value": 100_000_000}]}]}
    client = _client(lambda request: httpx.Response(200, json=body), sleeps)

    profile = client.fetch_address_profile(KRAKEN)
    assert profile.recent_transactions[0].direction == DIRECTION_INCOMING
    assert profile.recent_transactions[0].amount == 1.0


def test_latest_block_unavailable_returns_none(sleeps):
    client = _client(lambda request: httpx.Response(500), sleeps, max_retries=0)
    assert client.fetch_latest_block() is None


def test_api_key_and_limit_sent_as_query_params(sleeps):
    seen = {}

    def handler(request):
        seen.update(dict(request.url.params))
        return httpx.Response(200, json={"n_tx": 0, "txs": []})

    client = _client(handler, sleeps, api_key="secret")
    client.fetch_address_profile(KRAKEN)
    assert seen["api_key"] == "secret"
    assert seen["limit"] == "10"


def test_parse_address_profile_totals_volume_and_direction():
    address = "1DestAddr"
    data = {
        "total_received": 1_000_000_000,
        "total_sent": 250_000_000,
        "final_balance": 750_000_000,
        "n_tx": 3,
        "txs": [
            {"hash": "t1", "time": NOW - 86400, "out": [{"addr": address, "value": 200_000_000}]},
            {"hash": "t2", "time": NOW - 2 * 86400, "out": [{"addr": "1Other", "value": 50_000_000}]},
            {"hash": "t3", "time": NOW - 40 * 86400, "out": [{"addr": address, "value": 900_000_000}]},
        ],
    }
    profile = parse_address_profile(address, data, now=float(NOW))
    assert profile.total_received == 10.0
    assert profile.total_sent == 2.5
    assert profile.balance == 7.5
    assert profile.transaction_count == 3
    # Only the two transactions within 30 days count
    assert profile.volume_30d == pytest.approx(2.5)
    assert [t.direction for t in profile.recent_transactions] == [
        DIRECTION_INCOMING,
        DIRECTION_OUTGOING,
        DIRECTION_INCOMING,
    ]
    assert profile.known_entity is None


def test_parse_address_profile_tags_known_exchange():
    profile = parse_address_profile(KRAKEN, {"n_tx": 5, "txs": []}, now=float(NOW))
    assert profile.known_entity is not None
    assert profile.known_entity.name == "Kraken"
    assert profile.is_exchange


def test_parse_address_profile_rejects_non_object():
    with pytest.raises(GatewayError) as exc_info:
        parse_address_profile(KRAKEN, ["not", "a", "dict"], now=float(NOW))
    assert exc_info.value.error_type == GatewayErrorType.UNKNOWN
