"""Shared SQLAlchemy engine and table definitions for the relational store."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from chainsync.config import Settings, get_settings

LOGGER = logging.getLogger(__name__)

metadata = MetaData()

wallets = Table(
    "wallets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("address", String(42), nullable=False, unique=True, index=True),
    Column("balance", String(80), nullable=False, default="0"),
    Column("balance_usd", Float, nullable=False, default=0.0),
    Column("transaction_count", BigInteger, nullable=False, default=0, index=True),
    Column("is_contract", Boolean, nullable=False, default=False),
    Column("contract_type", String(64), nullable=True),
    Column("tags", JSON, nullable=False, default=list),
    Column("risk_score", Integer, nullable=False, default=0),
    Column("first_seen", DateTime(timezone=True), nullable=False),
    Column("last_activity", DateTime(timezone=True), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# Append-only; monetary columns are integers and must be rounded before insert.
market_data_history = Table(
    "market_data_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("eth_price", Float, nullable=False),
    Column("eth_market_cap", BigInteger, nullable=False),
    Column("eth_volume_24h", BigInteger, nullable=False),
    Column("eth_price_change_24h", Float, nullable=False),
    Column("gas_slow", Float, nullable=False),
    Column("gas_standard", Float, nullable=False),
    Column("gas_fast", Float, nullable=False),
    Column("gas_instant", Float, nullable=False),
    Column("block_number", BigInteger, nullable=False),
    Column("block_time", Float, nullable=False),
    Column("difficulty", String(80), nullable=False),
    Column("hash_rate", String(80), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
)

_ENGINE: Optional[Engine] = None


def build_engine(url: str, timeout_seconds: float = 15.0) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
        connect_args={"connect_timeout": int(timeout_seconds)},
    )


def get_engine(settings: Optional[Settings] = None) -> Engine:
    """Return the shared engine, creating it from ``DATABASE_URL`` if needed."""
    global _ENGINE

    if _ENGINE is None:
        settings = settings or get_settings()
        settings.require("database_url")
        LOGGER.info("Initializing relational engine (%s)", settings.database_url.split("://", 1)[0])
        _ENGINE = build_engine(settings.database_url, settings.http_timeout_seconds)

    return _ENGINE


def dispose_engine() -> None:
    global _ENGINE

    if _ENGINE is not None:
        LOGGER.info("Disposing relational engine")
        _ENGINE.dispose()
        _ENGINE = None


__all__ = ["metadata", "wallets", "market_data_history", "build_engine", "get_engine", "dispose_engine"]
