"""Market, gas and network snapshot sync with per-source fallbacks."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from chainsync.db.cache import (
    MARKET_ETHEREUM,
    MARKET_GAS,
    MARKET_LATEST,
    MARKET_NETWORK,
    TOKEN_PRICE,
    cache_key,
)
from chainsync.errors import NumericRangeViolation, StoreWriteFailure
from chainsync.models import EthereumQuote, GasTracker, MarketSnapshot, NetworkStats, TokenPrice
from chainsync.utils.numeric import round_to_bigint

LOGGER = logging.getLogger(__name__)

SNAPSHOT_TTL = 300
ETHEREUM_TTL = 300
GAS_TTL = 600
NETWORK_TTL = 300
TOKEN_PRICE_TTL = 300
TOKEN_BATCH_SIZE = 10


def default_ethereum() -> EthereumQuote:
    return EthereumQuote(price=0.0, market_cap=0.0, volume_24h=0.0, price_change_24h=0.0)


def default_gas() -> GasTracker:
    return GasTracker(slow=20, standard=25, fast=30, instant=35)


def default_network() -> NetworkStats:
    return NetworkStats(block_number=0, block_time=12, difficulty="0", hash_rate="0")


def history_row(snapshot: MarketSnapshot, created_at: datetime) -> Dict[str, Any]:
    """Flatten ``snapshot`` for the history table, rounding the integer columns.

    Raises ``NumericRangeViolation`` before anything is written if a value
    cannot be represented.
    """
    eth = snapshot.ethereum
    gas = snapshot.gas_tracker
    network = snapshot.network_stats
    return {
        "eth_price": eth.price,
        "eth_market_cap": round_to_bigint(eth.market_cap, "eth_market_cap"),
        "eth_volume_24h": round_to_bigint(eth.volume_24h, "eth_volume_24h"),
        "eth_price_change_24h": eth.price_change_24h,
        "gas_slow": gas.slow,
        "gas_standard": gas.standard,
        "gas_fast": gas.fast,
        "gas_instant": gas.instant,
        "block_number": round_to_bigint(network.block_number, "block_number"),
        "block_time": network.block_time,
        "difficulty": network.difficulty,
        "hash_rate": network.hash_rate,
        "created_at": created_at,
    }


class MarketSyncPipeline:
    def __init__(
        self,
        price_source,
        gas_source,
        network_source,
        repository,
        cache,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._price_source = price_source
        self._gas_source = gas_source
        self._network_source = network_source
        self._repository = repository
        self._cache = cache
        self._clock = clock

    def _fetch_all(self) -> MarketSnapshot:
        fetchers = {
            "ethereum": (self._price_source.get_ethereum_quote, default_ethereum),
            "gas_tracker": (self._gas_source.get_gas_tracker, default_gas),
            "network_stats": (self._network_source.get_network_stats, default_network),
        }

        values: Dict[str, Any] = {}
        degraded: List[str] = []
        with ThreadPoolExecutor(max_workers=len(fetchers), thread_name_prefix="market-sync") as pool:
            futures = {name: pool.submit(fetch) for name, (fetch, _default) in fetchers.items()}
            for name, future in futures.items():
                try:
                    values[name] = future.result()
                except Exception as exc:  # any source failure falls back to its default
                    LOGGER.error("Error fetching %s, using defaults: %s", name, exc)
                    values[name] = fetchers[name][1]()
                    degraded.append(name)

        return MarketSnapshot(degraded_sources=degraded, **values)

    def _cache_snapshot(self, snapshot: MarketSnapshot) -> None:
        entries = (
            (MARKET_LATEST, snapshot, SNAPSHOT_TTL),
            (MARKET_ETHEREUM, snapshot.ethereum, ETHEREUM_TTL),
            (MARKET_GAS, snapshot.gas_tracker, GAS_TTL),
            (MARKET_NETWORK, snapshot.network_stats, NETWORK_TTL),
        )
        for key, value, ttl in entries:
            try:
                self._cache.set_json(key, value, ttl)
            except StoreWriteFailure as exc:
                LOGGER.warning("Failed to cache %s: %s", key, exc)

    def _store_history(self, snapshot: MarketSnapshot) -> bool:
        try:
            row = history_row(snapshot, self._clock())
        except NumericRangeViolation as exc:
            LOGGER.error("Market snapshot not written to history: %s", exc)
            return False

        try:
            self._repository.insert_market_history(row)
        except StoreWriteFailure as exc:
            LOGGER.error("Error storing market data history: %s", exc)
            return False
        return True

    def sync_market_data(self) -> MarketSnapshot:
        """Fetch all sources, cache the snapshot and append one history row."""
        LOGGER.info("Starting market data sync")
        snapshot = self._fetch_all()
        self._cache_snapshot(snapshot)
        written = self._store_history(snapshot)

        LOGGER.info(
            "Market data sync completed (degraded=%s, history_written=%s)",
            ",".join(snapshot.degraded_sources) or "none",
            written,
        )
        return snapshot

    def latest_snapshot(self) -> Optional[MarketSnapshot]:
        payload = self._cache.get_json(MARKET_LATEST)
        if payload is None:
            return None
        return MarketSnapshot.model_validate(payload)

    def sync_token_prices(self, token_ids: Iterable[str]) -> List[TokenPrice]:
        """Fetch token prices in batches; a failing batch is logged and skipped."""
        ids = list(dict.fromkeys(token_id.strip().lower() for token_id in token_ids if token_id and token_id.strip()))
        LOGGER.info("Crawling prices for %d tokens", len(ids))

        prices: List[TokenPrice] = []
        for start in range(0, len(ids), TOKEN_BATCH_SIZE):
            batch = ids[start : start + TOKEN_BATCH_SIZE]
            try:
                batch_prices = self._price_source.get_token_prices(batch)
            except Exception as exc:  # isolate the batch
                LOGGER.error("Error fetching token prices for batch %d-%d: %s", start, start + len(batch), exc)
                continue

            for price in batch_prices:
                try:
                    self._cache.set_json(cache_key(TOKEN_PRICE, price.token_id), price, TOKEN_PRICE_TTL)
                except StoreWriteFailure as exc:
                    LOGGER.warning("Failed to cache price for %s: %s", price.token_id, exc)
            prices.extend(batch_prices)

        LOGGER.info("Successfully crawled prices for %d tokens", len(prices))
        return prices


__all__ = [
    "MarketSyncPipeline",
    "history_row",
    "default_ethereum",
    "default_gas",
    "default_network",
]
