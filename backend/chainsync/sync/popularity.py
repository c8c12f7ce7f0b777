"""Periodic ranking of the most active wallets from relational state."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from chainsync.db.cache import POPULAR_WALLETS
from chainsync.errors import StoreWriteFailure
from chainsync.models import PopularWallet
from chainsync.scoring.heuristics import compute_popularity_score

LOGGER = logging.getLogger(__name__)

MIN_TRANSACTIONS = 100
ACTIVITY_WINDOW = timedelta(days=30)
TOP_N = 100
POPULAR_TTL = 6 * 60 * 60


class PopularityRanker:
    def __init__(
        self,
        repository,
        cache,
        limit: int = TOP_N,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._limit = limit
        self._clock = clock

    def discover_popular(self, now: Optional[datetime] = None) -> List[PopularWallet]:
        """Rank busy, recently active wallets and cache the list for six hours."""
        LOGGER.info("Starting popular wallet discovery")
        now = now or self._clock()

        rows = self._repository.fetch_active_wallets(
            min_transactions=MIN_TRANSACTIONS,
            active_since=now - ACTIVITY_WINDOW,
            limit=self._limit,
        )

        popular = [
            PopularWallet(
                address=row["address"],
                transaction_count=row["transaction_count"],
                balance=row["balance"],
                balance_usd=float(row["balance_usd"] or 0),
                activity_score=compute_popularity_score(row, now),
                last_activity=row["last_activity"],
                tags=row.get("tags") or [],
            )
            for row in rows
        ]

        try:
            self._cache.set_json(POPULAR_WALLETS, popular, POPULAR_TTL)
        except StoreWriteFailure as exc:
            LOGGER.warning("Failed to cache popular wallets: %s", exc)

        LOGGER.info("Discovered %d popular wallets", len(popular))
        return popular


__all__ = ["PopularityRanker", "POPULAR_TTL"]
