"""
Market price provider client.

One bounded call (5s) for the current BTC/USD price. Failures never
propagate: the fixed fallback price is returned and the reason logged.
"""

from __future__ import annotations

from typing import Any

import httpx

from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)

DEFAULT_PRICE_API_URL = "https://api.coingecko.com/api/v3/simple/price"
PRICE_TIMEOUT_SEC = 5.0
FALLBACK_BTC_PRICE_USD = 95_000.0


def _extract_price(data: Any) -> float:
    price = data["bitcoin"]["usd"]
    if isinstance(price, bool) or not isinstance(price, (int, float)) or price <= 0:
        raise ValueError(f"Invalid BTC price in response: {price!r}")
    return float(price)


class PriceClient:
    """Fetches the current BTC price; always returns a positive number."""

    def __init__(
        self,
        url: str = DEFAULT_PRICE_API_URL,
        *,
        timeout_sec: float = PRICE_TIMEOUT_SEC,
        fallback_price: float = FALLBACK_BTC_PRICE_USD,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_sec
        self._fallback = fallback_price
        self._transport = transport

    def fetch_btc_price(self) -> float:
        try:
            with httpx.Client(transport=self._transport, timeout=self._timeout) as client:
                resp = client.get(self._url, params={"ids": "bitcoin", "vs_currencies": "usd"})
                resp.raise_for_status()
                price = _extract_price(resp.json())
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.warning("price_fetch_failed_using_fallback", fallback=self._fallback, error=str(e))
            return self._fallback
        logger.debug("price_fetched", price_usd=price)
        return price
