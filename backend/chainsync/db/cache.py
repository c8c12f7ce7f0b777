"""JSON cache on top of Redis."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis
from pydantic import BaseModel

from chainsync.errors import ConfigurationError, StoreWriteFailure

LOGGER = logging.getLogger(__name__)

WALLET_DETAILS = "wallet_details"
WALLET_TRANSACTIONS = "wallet_transactions"
POPULAR_WALLETS = "popular_wallets"
MARKET_LATEST = "market_data:latest"
MARKET_ETHEREUM = "market_data:ethereum"
MARKET_GAS = "market_data:gas_tracker"
MARKET_NETWORK = "market_data:network_stats"
TOKEN_PRICE = "token_price"


def cache_key(prefix: str, *parts: str) -> str:
    return ":".join([prefix, *parts])


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_jsonable(item) for key, item in value.items()}
    return value


class CacheStore:
    def __init__(self, client: redis.Redis) -> None:
        if client is None:
            raise ConfigurationError("CacheStore requires a Redis client")
        self._client = client

    def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = json.dumps(_to_jsonable(value), default=str, sort_keys=True)
        try:
            self._client.set(key, payload, ex=int(ttl_seconds))
        except redis.RedisError as exc:
            raise StoreWriteFailure("cache", f"SET {key} failed: {exc}") from exc

    def get_json(self, key: str) -> Optional[Any]:
        try:
            raw = self._client.get(key)
        except redis.RedisError as exc:
            LOGGER.error("Cache read for %s failed: %s", key, exc)
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)


__all__ = [
    "CacheStore",
    "cache_key",
    "WALLET_DETAILS",
    "WALLET_TRANSACTIONS",
    "POPULAR_WALLETS",
    "MARKET_LATEST",
    "MARKET_ETHEREUM",
    "MARKET_GAS",
    "MARKET_NETWORK",
    "TOKEN_PRICE",
]
