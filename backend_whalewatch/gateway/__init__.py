"""
Upstream gateway package: ledger and market-price clients.

Thin httpx wrappers with per-call timeouts, classified errors, bounded
retry with exponential backoff, and a TTL cache for address profiles.
"""

from backend_whalewatch.gateway.cache import AddressProfileCache
from backend_whalewatch.gateway.client import BlockchainClient
from backend_whalewatch.gateway.price import FALLBACK_BTC_PRICE_USD, PriceClient

__all__ = ["AddressProfileCache", "BlockchainClient", "FALLBACK_BTC_PRICE_USD", "PriceClient"]
