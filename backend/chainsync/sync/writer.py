"""Idempotent fan-out of a scored wallet to the relational, graph and cache stores."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from chainsync.db.cache import WALLET_DETAILS, WALLET_TRANSACTIONS, cache_key
from chainsync.errors import StoreWriteFailure
from chainsync.models import TransactionSample, WalletRecord
from chainsync.scoring.edges import build_counterparty_edges

LOGGER = logging.getLogger(__name__)


@dataclass
class WriteOutcome:
    record: WalletRecord
    graph_written: bool
    cache_written: bool


class MultiStoreWriter:
    """Writes one wallet to three independent stores.

    The relational row is the source of truth: its failure propagates and the
    graph and cache are left untouched. Graph and cache failures are logged and
    reported on the outcome; the next scheduled sync converges them.
    """

    def __init__(
        self,
        repository,
        graph,
        cache,
        wallet_ttl_seconds: int = 300,
        transactions_ttl_seconds: int = 600,
    ) -> None:
        self._repository = repository
        self._graph = graph
        self._cache = cache
        self._wallet_ttl = wallet_ttl_seconds
        self._transactions_ttl = transactions_ttl_seconds

    def upsert_wallet(
        self,
        record: WalletRecord,
        transactions: Iterable[TransactionSample] = (),
        now: Optional[datetime] = None,
    ) -> WriteOutcome:
        transactions = list(transactions)

        # the stored row wins for write-once fields such as first_seen
        record = self._repository.upsert_wallet(record, now=now)

        graph_written = True
        try:
            self._graph.upsert_wallet(record, build_counterparty_edges(record.address, transactions))
        except StoreWriteFailure as exc:
            graph_written = False
            LOGGER.warning("Graph write for %s deferred to next sync: %s", record.address, exc)

        cache_written = True
        try:
            self._cache.set_json(cache_key(WALLET_DETAILS, record.address), record, self._wallet_ttl)
            if transactions:
                self._cache.set_json(
                    cache_key(WALLET_TRANSACTIONS, record.address),
                    [tx.to_cache() for tx in transactions],
                    self._transactions_ttl,
                )
        except StoreWriteFailure as exc:
            cache_written = False
            LOGGER.warning("Cache write for %s failed: %s", record.address, exc)

        return WriteOutcome(record=record, graph_written=graph_written, cache_written=cache_written)


__all__ = ["MultiStoreWriter", "WriteOutcome"]
