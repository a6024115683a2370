"""
Data models for ledger provider output.

Transactions, block headers, and address profiles normalized from the
provider's raw JSON. All values arriving in satoshis are kept as integers on
transactions; address profiles carry BTC floats.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SATOSHIS_PER_BTC = 100_000_000

ENTITY_EXCHANGE = "exchange"
ENTITY_MIXER = "mixer"
ENTITY_WHALE = "whale"
ENTITY_UNKNOWN = "unknown"
ENTITY_CATEGORIES = frozenset({ENTITY_EXCHANGE, ENTITY_MIXER, ENTITY_WHALE, ENTITY_UNKNOWN})

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"


def short_id(value: str, length: int = 10) -> str:
    """Log/debug form of an address or hash: first `length` chars plus "..." when longer."""
    return value[:length] + "..." if len(value) > length else value


def satoshis_to_btc(value: int | float | None) -> float:
    """Convert satoshis to BTC; None and negatives become 0."""
    if not value or value < 0:
        return 0.0
    return int(value) / SATOSHIS_PER_BTC


@dataclass(frozen=True)
class TxInput:
    address: str | None
    value: int
    """Satoshis."""


@dataclass(frozen=True)
class TxOutput:
    address: str | None
    value: int
    """Satoshis."""


@dataclass(frozen=True)
class Transaction:
    """
    One on-chain transfer as observed from the ledger. Never mutated locally.
    """

    hash: str
    timestamp: int
    """Unix timestamp (seconds)."""
    inputs: tuple[TxInput, ...]
    outputs: tuple[TxOutput, ...]
    block_height: int | None = None
    fee: int = 0

    @property
    def total_output_satoshis(self) -> int:
        return sum(o.value for o in self.outputs)

    @property
    def total_output_btc(self) -> float:
        return self.total_output_satoshis / SATOSHIS_PER_BTC

    @property
    def input_addresses(self) -> list[str]:
        return [i.address for i in self.inputs if i.address]

    @classmethod
    def from_raw(cls, item: dict[str, Any]) -> "Transaction":
        """
        Build from a provider tx object (hash, time, inputs[].prev_out, out[]).

        Non-object inputs/outputs are skipped; a missing hash raises KeyError.
        """
        inputs = []
        for raw_in in item.get("inputs") or []:
            prev = raw_in.get("prev_out") if isinstance(raw_in, dict) else None
            if not isinstance(prev, dict):
                continue
            inputs.append(TxInput(address=prev.get("addr"), value=int(prev.get("value") or 0)))
        outputs = [
            TxOutput(address=raw_out.get("addr"), value=int(raw_out.get("value") or 0))
            for raw_out in item.get("out") or []
            if isinstance(raw_out, dict)
        ]
        height = item.get("block_height")
        return cls(
            hash=str(item["hash"]),
            timestamp=int(item.get("time") or 0),
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            block_height=int(height) if height is not None else None,
            fee=int(item.get("fee") or 0),
        )


@dataclass(frozen=True)
class BlockHeader:
    hash: str
    height: int
    timestamp: int
    tx_indexes: tuple[int, ...] = ()

    @classmethod
    def from_raw(cls, item: dict[str, Any]) -> "BlockHeader":
        return cls(
            hash=str(item["hash"]),
            height=int(item.get("height") or 0),
            timestamp=int(item.get("time") or 0),
            tx_indexes=tuple(int(i) for i in item.get("txIndexes") or []),
        )


@dataclass(frozen=True)
class KnownEntity:
    name: str
    category: str
    """exchange | mixer | whale | unknown"""

    def __post_init__(self) -> None:
        if self.category not in ENTITY_CATEGORIES:
            raise ValueError(f"unknown entity category: {self.category!r}")

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "type": self.category}


@dataclass(frozen=True)
class RecentTransaction:
    hash: str
    time: str
    """ISO 8601."""
    amount: float
    """BTC."""
    direction: str
    """incoming | outgoing (relative to the profiled address)"""

    def to_dict(self) -> dict[str, Any]:
        return {"hash": self.hash, "time": self.time, "amount": self.amount, "type": self.direction}


@dataclass(frozen=True)
class AddressProfile:
    """
    Aggregate statistics for one address.

    empty() is the degraded profile served when the provider cannot be
    reached; downstream analysis proceeds on it with reduced confidence.
    """

    address: str
    total_received: float = 0.0
    total_sent: float = 0.0
    balance: float = 0.0
    transaction_count: int = 0
    recent_transactions: tuple[RecentTransaction, ...] = field(default_factory=tuple)
    volume_30d: float = 0.0
    known_entity: KnownEntity | None = None

    @classmethod
    def empty(cls, address: str) -> "AddressProfile":
        return cls(address=address)

    @property
    def is_empty(self) -> bool:
        return self.transaction_count == 0

    @property
    def is_exchange(self) -> bool:
        return self.known_entity is not None and self.known_entity.category == ENTITY_EXCHANGE

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "total_received": self.total_received,
            "total_sent": self.total_sent,
            "balance": self.balance,
            "transaction_count": self.transaction_count,
            "recent_transactions": [t.to_dict() for t in self.recent_transactions],
            "volume_30d": self.volume_30d,
            "known_entity": self.known_entity.to_dict() if self.known_entity else None,
        }
