"""Relational persistence for wallet rows and market history."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from chainsync.db.postgres import market_data_history, wallets
from chainsync.errors import ConfigurationError, StoreWriteFailure
from chainsync.models import WalletRecord

LOGGER = logging.getLogger(__name__)

MUTABLE_COLUMNS = (
    "balance",
    "balance_usd",
    "transaction_count",
    "is_contract",
    "contract_type",
    "tags",
    "risk_score",
    "last_activity",
)

_UPSERT_BUILDERS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timestamps back without tzinfo; everything is stored as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class WalletRepository:
    """Upserts wallet rows keyed by address and appends market history rows."""

    def __init__(self, engine: Engine) -> None:
        if engine is None:
            raise ConfigurationError("WalletRepository requires a SQLAlchemy engine")
        builder = _UPSERT_BUILDERS.get(engine.dialect.name)
        if builder is None:
            raise ConfigurationError(f"Unsupported relational dialect: {engine.dialect.name}")
        self._engine = engine
        self._insert = builder

    def upsert_wallet(self, record: WalletRecord, now: Optional[datetime] = None) -> WalletRecord:
        """Insert or update ``record``; return it as stored.

        ``first_seen`` is write-once, so the returned record carries the stored
        value rather than the one derived from the current sample.
        """
        now = _as_utc(now) or datetime.now(timezone.utc)
        values = {
            "address": record.address,
            "balance": record.balance,
            "balance_usd": record.balance_usd,
            "transaction_count": record.transaction_count,
            "is_contract": record.is_contract,
            "contract_type": record.contract_type,
            "tags": sorted(set(record.tags)),
            "risk_score": record.risk_score,
            "first_seen": _as_utc(record.first_seen),
            "last_activity": _as_utc(record.last_activity),
            "created_at": now,
            "updated_at": now,
        }

        stmt = self._insert(wallets).values(**values)
        update = {column: stmt.excluded[column] for column in MUTABLE_COLUMNS}
        update["updated_at"] = now
        stmt = stmt.on_conflict_do_update(index_elements=["address"], set_=update).returning(
            wallets.c.first_seen, wallets.c.updated_at
        )

        try:
            with self._engine.begin() as conn:
                stored = conn.execute(stmt).one()
        except SQLAlchemyError as exc:
            LOGGER.error("Error storing wallet %s in database: %s", record.address, exc)
            raise StoreWriteFailure("relational", f"upsert failed for {record.address}") from exc

        return record.model_copy(
            update={"first_seen": _as_utc(stored.first_seen), "updated_at": _as_utc(stored.updated_at)}
        )

    def get_updated_at(self, address: str) -> Optional[datetime]:
        """Return when ``address`` was last synced, or ``None`` if it was never stored."""
        query = select(wallets.c.updated_at).where(wallets.c.address == address)
        with self._engine.connect() as conn:
            value = conn.execute(query).scalar_one_or_none()
        return _as_utc(value)

    def get_wallet(self, address: str) -> Optional[WalletRecord]:
        query = select(wallets).where(wallets.c.address == address)
        with self._engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        if row is None:
            return None
        return WalletRecord(
            address=row["address"],
            balance=row["balance"],
            balance_usd=row["balance_usd"],
            transaction_count=row["transaction_count"],
            is_contract=row["is_contract"],
            contract_type=row["contract_type"],
            tags=row["tags"] or [],
            risk_score=row["risk_score"],
            first_seen=_as_utc(row["first_seen"]),
            last_activity=_as_utc(row["last_activity"]),
            updated_at=_as_utc(row["updated_at"]),
        )

    def count_wallets(self) -> int:
        with self._engine.connect() as conn:
            return int(conn.execute(select(func.count()).select_from(wallets)).scalar_one())

    def fetch_active_wallets(
        self,
        min_transactions: int,
        active_since: datetime,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Wallets above ``min_transactions`` active after ``active_since``, busiest first."""
        query = (
            select(
                wallets.c.address,
                wallets.c.transaction_count,
                wallets.c.balance,
                wallets.c.balance_usd,
                wallets.c.last_activity,
                wallets.c.tags,
                wallets.c.created_at,
            )
            .where(wallets.c.transaction_count > min_transactions)
            .where(wallets.c.last_activity > _as_utc(active_since))
            .order_by(wallets.c.transaction_count.desc(), wallets.c.balance_usd.desc())
            .limit(limit)
            .offset(offset)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query).mappings().all()

        results = []
        for row in rows:
            item = dict(row)
            item["last_activity"] = _as_utc(item["last_activity"])
            item["created_at"] = _as_utc(item["created_at"])
            item["tags"] = item.get("tags") or []
            results.append(item)
        return results

    def insert_market_history(self, values: Dict[str, Any]) -> None:
        """Append one history row; integer columns must already be rounded."""
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(market_data_history).values(**values))
        except SQLAlchemyError as exc:
            LOGGER.error("Error storing market data history: %s", exc)
            raise StoreWriteFailure("relational", "market history insert failed") from exc


__all__ = ["WalletRepository", "MUTABLE_COLUMNS"]
