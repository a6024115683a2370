"""
Tests for PriceClient: parsed price on success, fixed fallback on any failure.
"""

from __future__ import annotations

import httpx

from backend_whalewatch.gateway.price import FALLBACK_BTC_PRICE_USD, PriceClient

PRICE_URL = "https://price.test/simple/price"


def _client(handler) -> PriceClient:
    return PriceClient(PRICE_URL, transport=httpx.MockTransport(handler))


def test_fetch_btc_price_success():
    def handler(request):
        assert request.url.params["ids"] == "bitcoin"
        assert request.url.params["vs_currencies"] == "usd"
        return httpx.Response(200, json={"bitcoin": {"usd": 64250.5}})

    assert _client(handler).fetch_btc_price() == 64250.5


def test_fetch_btc_price_http_error_uses_fallback():
    assert _client(lambda request: httpx.Response(502)).fetch_btc_price() == FALLBACK_BTC_PRICE_USD


def test_fetch_btc_price_timeout_uses_fallback():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    assert _client(handler).fetch_btc_price() == FALLBACK_BTC_PRICE_USD


def test_fetch_btc_price_malformed_body_uses_fallback():
    assert _client(lambda request: httpx.Response(200, json={"eth": {"usd": 1}})).fetch_btc_price() == 95000.0
    assert _client(lambda request: httpx.Response(200, text="not json")).fetch_btc_price() == 95000.0
    assert _client(lambda request: httpx.Response(200, json={"bitcoin": {"usd": -5}})).fetch_btc_price() == 95000.0
