"""
Analysis result models: whale transactions, flow classification, patterns.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class WhaleType(str, Enum):
    EXCHANGE_DEPOSIT = "exchange_deposit"
    EXCHANGE_WITHDRAWAL = "exchange_withdrawal"
    WHALE_TO_WHALE = "whale_to_whale"
    UNKNOWN = "unknown"


class ExchangeFlow(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    NONE = "none"


@dataclass(frozen=True)
class Classification:
    type: WhaleType
    description: str


@dataclass(frozen=True)
class WhaleTransaction:
    """
    A transaction that cleared the whale threshold.

    amount_usd is amount x price at detection time (a point estimate, not the
    historical price). Never mutated after creation.
    """

    tx_hash: str
    amount: float
    """BTC, satoshis / 1e8."""
    amount_usd: float
    from_address: str
    to_address: str
    timestamp: str
    """ISO 8601."""
    type: WhaleType = WhaleType.UNKNOWN
    description: str = ""
    is_whale: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "amount": self.amount,
            "amount_usd": self.amount_usd,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "timestamp": self.timestamp,
            "type": self.type.value,
            "description": self.description,
            "is_whale": self.is_whale,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WhaleTransaction:
        """Rebuild from to_dict() output or an API payload; missing type means unknown."""
        raw_type = data.get("type") or WhaleType.UNKNOWN.value
        try:
            whale_type = WhaleType(raw_type)
        except ValueError:
            whale_type = WhaleType.UNKNOWN
        return cls(
            tx_hash=str(data["tx_hash"]),
            amount=float(data["amount"]),
            amount_usd=float(data.get("amount_usd") or 0.0),
            from_address=str(data.get("from_address") or "unknown"),
            to_address=str(data.get("to_address") or "unknown"),
            timestamp=str(data.get("timestamp") or ""),
            type=whale_type,
            description=str(data.get("description") or ""),
        )


@dataclass(frozen=True)
class TransactionPatterns:
    """Derived per request; never persisted apart from the job result that produced it."""

    is_accumulation: bool
    is_distribution: bool
    is_mixing: bool
    exchange_flow: ExchangeFlow

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_accumulation": self.is_accumulation,
            "is_distribution": self.is_distribution,
            "is_mixing": self.is_mixing,
            "exchange_flow": self.exchange_flow.value,
        }

