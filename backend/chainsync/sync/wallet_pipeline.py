"""Per-wallet sync orchestration: staleness check, fetch, score, persist."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set

from chainsync.errors import StoreUnavailableError, classify_error
from chainsync.models import SyncResult, SyncStatus, WalletDetail, WalletRecord
from chainsync.scoring.heuristics import HeuristicScorer
from chainsync.utils.addresses import normalize_eth_address
from chainsync.utils.numeric import format_eth

LOGGER = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 50
ESCALATING_KINDS = {"store_write", "configuration"}


class _FailureStreak:
    """Counts consecutive store/configuration failures across completed items."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.count = 0

    def record(self, result: SyncResult) -> None:
        if not result.ok and result.error_kind in ESCALATING_KINDS:
            self.count += 1
        elif result.ok and not result.skipped:
            self.count = 0

    @property
    def tripped(self) -> bool:
        return self.limit > 0 and self.count >= self.limit


class WalletSyncPipeline:
    def __init__(
        self,
        source,
        writer,
        staleness,
        scorer=None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        max_workers: int = 4,
        max_consecutive_store_failures: int = 5,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._source = source
        self._writer = writer
        self._staleness = staleness
        self._scorer = scorer or HeuristicScorer()
        self._sample_size = sample_size
        self._max_workers = max(1, max_workers)
        self._max_store_failures = max_consecutive_store_failures
        self._clock = clock

    def build_record(self, address: str, detail: WalletDetail, now: datetime) -> WalletRecord:
        """Score ``detail`` into a ``WalletRecord`` (no I/O)."""
        metrics = self._scorer.activity(detail.transactions)
        return WalletRecord(
            address=address,
            balance=format_eth(detail.balance),
            balance_usd=detail.balance_usd,
            transaction_count=detail.transaction_count,
            is_contract=detail.is_contract,
            contract_type=detail.contract_type,
            tags=sorted(self._scorer.tags(detail, metrics)),
            risk_score=self._scorer.risk(detail, metrics, now),
            first_seen=metrics.first_seen or now,
            last_activity=metrics.last_activity or now,
        )

    def sync_wallet(self, address: str, force: bool = False) -> SyncResult:
        """Sync one wallet. Per-item failures are returned, never raised."""
        status = SyncStatus.PENDING
        normalized = str(address)

        try:
            normalized = normalize_eth_address(address)

            if not force and not self._staleness.needs_refresh(normalized):
                LOGGER.debug("Wallet %s doesn't need refresh, skipping", normalized)
                return SyncResult(address=normalized, ok=True, status=SyncStatus.SKIPPED, skipped=True)

            status = SyncStatus.FETCHING
            detail = self._source.fetch_wallet(normalized, self._sample_size)

            status = SyncStatus.SCORING
            now = self._clock()
            record = self.build_record(normalized, detail, now)

            status = SyncStatus.PERSISTING
            outcome = self._writer.upsert_wallet(record, detail.transactions, now=now)
        except Exception as exc:  # isolate the item; the batch keeps going
            kind = classify_error(exc)
            if kind == "unexpected":
                LOGGER.exception("Unexpected error syncing wallet %s during %s", normalized, status.value)
            else:
                LOGGER.error("Error syncing wallet %s during %s: %s", normalized, status.value, exc)
            return SyncResult(
                address=normalized,
                ok=False,
                status=SyncStatus.FAILED,
                error=str(exc) or exc.__class__.__name__,
                error_kind=kind,
            )

        return SyncResult(
            address=normalized,
            ok=True,
            status=SyncStatus.SUCCEEDED,
            wallet=outcome.record,
            graph_written=outcome.graph_written,
            cache_written=outcome.cache_written,
        )

    def sync_batch(
        self,
        addresses: Iterable[str],
        force: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[SyncResult]:
        """Sync every address on a bounded worker pool.

        Returns one result per input, in input order. Setting ``cancel_event``
        stops scheduling; in-flight items finish and the rest are reported as
        cancelled. Raises ``StoreUnavailableError`` only after
        ``max_consecutive_store_failures`` store failures in a row.
        """
        addresses = list(addresses)
        LOGGER.info("Starting wallet sync for %d addresses", len(addresses))

        results: List[Optional[SyncResult]] = [None] * len(addresses)
        streak = _FailureStreak(self._max_store_failures)
        index_of: Dict[Future, int] = {}
        pending: Set[Future] = set()
        next_index = 0

        def stopped() -> bool:
            return streak.tripped or (cancel_event is not None and cancel_event.is_set())

        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="wallet-sync") as pool:

            def schedule() -> None:
                nonlocal next_index
                while len(pending) < self._max_workers and next_index < len(addresses) and not stopped():
                    future = pool.submit(self.sync_wallet, addresses[next_index], force)
                    index_of[future] = next_index
                    pending.add(future)
                    next_index += 1

            schedule()
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    pending.discard(future)
                    result = future.result()
                    results[index_of[future]] = result
                    streak.record(result)
                schedule()

        reason = "stopped after repeated store or configuration failures" if streak.tripped else "batch cancelled"
        final: List[SyncResult] = []
        for address, result in zip(addresses, results):
            if result is None:
                result = SyncResult(
                    address=str(address),
                    ok=False,
                    status=SyncStatus.FAILED,
                    error=reason,
                    error_kind="cancelled",
                )
            final.append(result)

        succeeded = sum(1 for result in final if result.ok and not result.skipped)
        skipped = sum(1 for result in final if result.skipped)
        LOGGER.info(
            "Wallet sync completed: %d/%d successful, %d skipped, %d failed",
            succeeded,
            len(final),
            skipped,
            len(final) - succeeded - skipped,
        )

        if streak.tripped:
            LOGGER.error("Stopping wallet sync after %d consecutive store or configuration failures", streak.count)
            raise StoreUnavailableError(
                f"{streak.count} consecutive store or configuration failures; batch stopped", results=final
            )

        return final


__all__ = ["WalletSyncPipeline", "DEFAULT_SAMPLE_SIZE"]
