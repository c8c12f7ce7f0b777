"""Builds the long-lived pipeline components from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from chainsync.config import Settings, get_settings
from chainsync.db.cache import CacheStore
from chainsync.db.graph_repository import GraphRepository
from chainsync.db.neo4j_client import close_driver, get_driver
from chainsync.db.postgres import dispose_engine, get_engine
from chainsync.db.redis_client import close_redis, get_redis
from chainsync.db.wallet_repository import WalletRepository
from chainsync.ingest import coingecko, etherscan
from chainsync.ingest.coingecko import CoinGeckoClient
from chainsync.ingest.etherscan import EtherscanClient, EtherscanWalletSource
from chainsync.ingest.rate_limiter import RateLimiter
from chainsync.sync.market_pipeline import MarketSyncPipeline
from chainsync.sync.popularity import PopularityRanker
from chainsync.sync.staleness import StalenessPolicy
from chainsync.sync.wallet_pipeline import WalletSyncPipeline
from chainsync.sync.writer import MultiStoreWriter

LOGGER = logging.getLogger(__name__)


@dataclass
class Services:
    limiter: RateLimiter
    wallet_pipeline: WalletSyncPipeline
    market_pipeline: MarketSyncPipeline
    ranker: PopularityRanker


def build_services(settings: Settings) -> Services:
    """Wire every component; a missing store binding raises ``ConfigurationError``."""
    limiter = RateLimiter()
    limiter.configure(etherscan.SOURCE_KEY, settings.rate_limit_etherscan_ms)
    limiter.configure(coingecko.SOURCE_KEY, settings.rate_limit_coingecko_ms)

    etherscan_client = EtherscanClient(
        settings.etherscan_api_key,
        limiter,
        base_url=settings.etherscan_base_url,
        chain_id=settings.etherscan_chain_id,
        timeout=settings.http_timeout_seconds,
    )
    prices = CoinGeckoClient(limiter, base_url=settings.coingecko_base_url, timeout=settings.http_timeout_seconds)

    repository = WalletRepository(get_engine(settings))
    graph = GraphRepository(get_driver(settings), timeout_seconds=settings.neo4j_query_timeout_seconds)
    cache = CacheStore(get_redis(settings))

    writer = MultiStoreWriter(
        repository,
        graph,
        cache,
        wallet_ttl_seconds=settings.cache_ttl_wallet_details,
        transactions_ttl_seconds=settings.cache_ttl_transactions,
    )
    wallet_pipeline = WalletSyncPipeline(
        EtherscanWalletSource(etherscan_client, prices),
        writer,
        StalenessPolicy(repository, threshold_hours=settings.refresh_threshold_hours),
        sample_size=settings.transaction_sample_size,
        max_workers=settings.sync_max_workers,
        max_consecutive_store_failures=settings.sync_max_consecutive_store_failures,
    )
    market_pipeline = MarketSyncPipeline(prices, etherscan_client, etherscan_client, repository, cache)

    LOGGER.info("Pipeline services initialized")
    return Services(
        limiter=limiter,
        wallet_pipeline=wallet_pipeline,
        market_pipeline=market_pipeline,
        ranker=PopularityRanker(repository, cache),
    )


_SERVICES: Optional[Services] = None


def get_services() -> Services:
    global _SERVICES

    if _SERVICES is None:
        _SERVICES = build_services(get_settings())
    return _SERVICES


def close_services() -> None:
    """Release every shared client."""
    global _SERVICES

    _SERVICES = None
    close_driver()
    close_redis()
    dispose_engine()


__all__ = ["Services", "build_services", "get_services", "close_services"]
