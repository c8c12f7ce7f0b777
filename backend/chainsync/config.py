"""Environment backed settings for the chainsync service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional

from dotenv import load_dotenv

from chainsync.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

DEFAULT_ETHERSCAN_BASE_URL = "https://api.etherscan.io/v2/api"
DEFAULT_COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
DEFAULT_CORS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Runtime configuration resolved once per process."""

    database_url: Optional[str] = None
    neo4j_uri: Optional[str] = None
    neo4j_user: Optional[str] = None
    neo4j_password: Optional[str] = None
    redis_url: Optional[str] = None

    etherscan_api_key: Optional[str] = None
    etherscan_base_url: str = DEFAULT_ETHERSCAN_BASE_URL
    etherscan_chain_id: str = "1"
    coingecko_base_url: str = DEFAULT_COINGECKO_BASE_URL

    http_timeout_seconds: float = 15.0
    neo4j_query_timeout_seconds: float = 30.0
    refresh_threshold_hours: float = 2.0
    transaction_sample_size: int = 50
    sync_max_workers: int = 4
    sync_max_consecutive_store_failures: int = 5

    cache_ttl_wallet_details: int = 300
    cache_ttl_transactions: int = 600

    rate_limit_etherscan_ms: int = 200
    rate_limit_coingecko_ms: int = 1200

    cors_allow_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS))

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (after loading ``.env``)."""
        load_dotenv()

        origins_raw = os.getenv("CORS_ALLOW_ORIGINS")
        origins = list(DEFAULT_CORS)
        if origins_raw:
            parsed = [origin.strip() for origin in origins_raw.split(",") if origin.strip()]
            origins = parsed or origins

        return cls(
            database_url=os.getenv("DATABASE_URL"),
            neo4j_uri=os.getenv("NEO4J_URI"),
            neo4j_user=os.getenv("NEO4J_USER"),
            neo4j_password=os.getenv("NEO4J_PASSWORD"),
            redis_url=os.getenv("REDIS_URL"),
            etherscan_api_key=os.getenv("ETHERSCAN_API_KEY"),
            etherscan_base_url=os.getenv("ETHERSCAN_BASE_URL", DEFAULT_ETHERSCAN_BASE_URL),
            etherscan_chain_id=os.getenv("ETHERSCAN_CHAIN_ID", "1"),
            coingecko_base_url=os.getenv("COINGECKO_BASE_URL", DEFAULT_COINGECKO_BASE_URL),
            http_timeout_seconds=_float_env("HTTP_TIMEOUT_SECONDS", 15.0),
            neo4j_query_timeout_seconds=_float_env("NEO4J_QUERY_TIMEOUT_SECONDS", 30.0),
            refresh_threshold_hours=_float_env("REFRESH_THRESHOLD_HOURS", 2.0),
            transaction_sample_size=_int_env("TRANSACTION_SAMPLE_SIZE", 50),
            sync_max_workers=_int_env("SYNC_MAX_WORKERS", 4),
            sync_max_consecutive_store_failures=_int_env("SYNC_MAX_CONSECUTIVE_STORE_FAILURES", 5),
            cache_ttl_wallet_details=_int_env("CACHE_TTL_WALLET_DETAILS", 300),
            cache_ttl_transactions=_int_env("CACHE_TTL_TRANSACTIONS", 600),
            rate_limit_etherscan_ms=_int_env("RATE_LIMIT_ETHERSCAN_MS", 200),
            rate_limit_coingecko_ms=_int_env("RATE_LIMIT_COINGECKO_MS", 1200),
            cors_allow_origins=origins,
        )

    def require(self, *names: str) -> None:
        """Raise ``ConfigurationError`` listing every unset attribute in ``names``."""
        values: Dict[str, Optional[str]] = {name: getattr(self, name) for name in names}
        missing = [name.upper() for name, value in values.items() if not value]
        if missing:
            raise ConfigurationError(
                "Missing configuration. Please supply the following environment variables: "
                + ", ".join(missing)
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process wide settings instance."""
    settings = Settings.from_env()
    LOGGER.debug("Loaded settings (sample size=%d, workers=%d)", settings.transaction_sample_size, settings.sync_max_workers)
    return settings


__all__ = ["Settings", "get_settings"]
