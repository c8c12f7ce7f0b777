"""Schemas for market, gas and network snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EthereumQuote(BaseModel):
    price: float = 0.0
    market_cap: float = 0.0
    volume_24h: float = 0.0
    price_change_24h: float = 0.0
    last_updated: datetime = Field(default_factory=_utcnow)


class GasTracker(BaseModel):
    """Gas price tiers in gwei."""

    slow: float = 20.0
    standard: float = 25.0
    fast: float = 30.0
    instant: float = 35.0
    last_updated: datetime = Field(default_factory=_utcnow)


class NetworkStats(BaseModel):
    block_number: int = 0
    block_time: float = 12.0
    difficulty: str = "0"
    hash_rate: str = "0"
    last_updated: datetime = Field(default_factory=_utcnow)


class MarketSnapshot(BaseModel):
    """Aggregate of the three market sources; ``degraded_sources`` lists defaults in use."""

    ethereum: EthereumQuote
    gas_tracker: GasTracker
    network_stats: NetworkStats
    degraded_sources: List[str] = Field(default_factory=list)


class TokenPrice(BaseModel):
    token_id: str
    price: float = 0.0
    price_change_24h: float = 0.0
    volume_24h: float = 0.0
    market_cap: float = 0.0
    last_updated: datetime = Field(default_factory=_utcnow)


class TokenPriceRequest(BaseModel):
    token_ids: List[str] = Field(..., min_length=1, max_length=250)


__all__ = [
    "EthereumQuote",
    "GasTracker",
    "NetworkStats",
    "MarketSnapshot",
    "TokenPrice",
    "TokenPriceRequest",
]
