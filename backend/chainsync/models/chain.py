"""Plain records returned by the external data source adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class TransactionSample:
    """One recent transaction of a wallet, values in native units (ETH)."""

    hash: str
    from_address: str
    to_address: str
    value: Decimal
    timestamp: int
    block_number: int

    def to_cache(self) -> dict:
        return {
            "hash": self.hash,
            "from": self.from_address,
            "to": self.to_address,
            "value": str(self.value),
            "timestamp": self.timestamp,
            "block_number": self.block_number,
        }


@dataclass
class WalletDetail:
    """Current on-chain state of a wallet as reported by the balance provider."""

    address: str
    balance: Decimal
    balance_usd: float
    transaction_count: int
    is_contract: bool = False
    contract_type: Optional[str] = None
    transactions: list = field(default_factory=list)


__all__ = ["TransactionSample", "WalletDetail"]
