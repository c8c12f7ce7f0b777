import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from chainsync.errors import ConfigurationError, ExternalSourceFailure, StoreUnavailableError, StoreWriteFailure
from chainsync.models import SyncStatus, WalletDetail
from chainsync.sync.staleness import StalenessPolicy
from chainsync.sync.wallet_pipeline import WalletSyncPipeline
from chainsync.sync.writer import MultiStoreWriter
from conftest import NOW, addr, make_tx


class DummySource:
    def __init__(self, failing=(), on_fetch=None):
        self.failing = set(failing)
        self.on_fetch = on_fetch
        self.calls = []
        self._lock = threading.Lock()

    def fetch_wallet(self, address, sample_size):
        with self._lock:
            self.calls.append((address, sample_size))
        if self.on_fetch:
            self.on_fetch(address)
        if address in self.failing:
            raise ExternalSourceFailure("etherscan", "Request timed out")
        base = int(NOW.timestamp())
        return WalletDetail(
            address=address,
            balance=Decimal("150"),
            balance_usd=450000.0,
            transaction_count=1200,
            transactions=[
                make_tx(address, addr("b"), "20", base - 3600),
                make_tx(addr("c"), address, "30", base),
            ],
        )


class MemoryRepository:
    def __init__(self, fail=False):
        self.fail = fail
        self.rows = {}
        self._lock = threading.Lock()

    def upsert_wallet(self, record, now=None):
        if self.fail:
            raise StoreWriteFailure("relational", "connection refused")
        with self._lock:
            stored = self.rows.get(record.address)
            first_seen = stored.first_seen if stored else record.first_seen
            self.rows[record.address] = record.model_copy(update={"first_seen": first_seen, "updated_at": now})
            return self.rows[record.address]

    def get_updated_at(self, address):
        with self._lock:
            return NOW if address in self.rows else None


def _pipeline(source, repository, fake_graph, fake_cache, **kwargs):
    writer = MultiStoreWriter(repository, fake_graph, fake_cache)
    staleness = StalenessPolicy(repository, clock=lambda: NOW)
    return WalletSyncPipeline(source, writer, staleness, clock=lambda: NOW, **kwargs)


def test_sync_wallet_scores_and_persists(repository, fake_graph, fake_cache):
    source = DummySource()
    pipeline = _pipeline(source, repository, fake_graph, fake_cache)

    result = pipeline.sync_wallet(addr("A"))

    assert result.ok and result.status == SyncStatus.SUCCEEDED
    assert result.address == addr("a")
    assert source.calls == [(addr("a"), 50)]
    wallet = result.wallet
    assert wallet.tags == ["high-activity", "high-balance", "high-value-txs"]
    assert wallet.balance == "150"
    assert wallet.first_seen == NOW - timedelta(hours=1)
    assert wallet.last_activity == NOW
    assert wallet.updated_at == NOW
    assert repository.get_wallet(addr("a")).tags == wallet.tags
    assert result.graph_written and result.cache_written


def test_fresh_wallet_is_skipped_without_fetch(repository, fake_graph, fake_cache):
    source = DummySource()
    pipeline = _pipeline(source, repository, fake_graph, fake_cache)
    pipeline.sync_wallet(addr("a"))

    result = pipeline.sync_wallet(addr("a"))

    assert result.ok and result.skipped
    assert result.status == SyncStatus.SKIPPED
    assert len(source.calls) == 1


def test_force_bypasses_staleness(repository, fake_graph, fake_cache):
    source = DummySource()
    pipeline = _pipeline(source, repository, fake_graph, fake_cache)
    pipeline.sync_wallet(addr("a"))

    result = pipeline.sync_wallet(addr("a"), force=True)

    assert result.ok and not result.skipped
    assert len(source.calls) == 2


def test_invalid_address_fails_before_fetch(repository, fake_graph, fake_cache):
    source = DummySource()
    pipeline = _pipeline(source, repository, fake_graph, fake_cache)

    result = pipeline.sync_wallet("not-an-address")

    assert not result.ok
    assert result.error_kind == "invalid_input"
    assert source.calls == []


def test_external_failure_is_classified(repository, fake_graph, fake_cache):
    pipeline = _pipeline(DummySource(failing={addr("a")}), repository, fake_graph, fake_cache)

    result = pipeline.sync_wallet(addr("a"))

    assert not result.ok
    assert result.status == SyncStatus.FAILED
    assert result.error_kind == "external_source"
    assert repository.count_wallets() == 0


def test_batch_reports_every_address_in_order(fake_graph, fake_cache):
    addresses = [addr(char) for char in "0123456789"]
    repository = MemoryRepository()
    pipeline = _pipeline(
        DummySource(failing={addr("4")}), repository, fake_graph, fake_cache, max_workers=4
    )

    results = pipeline.sync_batch(addresses)

    assert [result.address for result in results] == addresses
    failed = [result for result in results if not result.ok]
    assert len(failed) == 1
    assert failed[0].address == addr("4")
    assert failed[0].error_kind == "external_source"
    assert set(repository.rows) == set(addresses) - {addr("4")}


def test_batch_with_invalid_entry_still_completes(fake_graph, fake_cache):
    pipeline = _pipeline(DummySource(), MemoryRepository(), fake_graph, fake_cache, max_workers=2)

    results = pipeline.sync_batch([addr("1"), "0x123", addr("2")])

    assert [result.ok for result in results] == [True, False, True]
    assert results[1].address == "0x123"
    assert results[1].error_kind == "invalid_input"


def test_cancellation_stops_scheduling(fake_graph, fake_cache):
    cancel = threading.Event()
    addresses = [addr(char) for char in "0123456789"]

    def cancel_after_first(address):
        if address == addr("0"):
            cancel.set()

    pipeline = _pipeline(
        DummySource(on_fetch=cancel_after_first), MemoryRepository(), fake_graph, fake_cache, max_workers=1
    )

    results = pipeline.sync_batch(addresses, cancel_event=cancel)

    assert len(results) == len(addresses)
    assert results[0].ok
    assert all(result.error_kind == "cancelled" for result in results[1:])


def test_repeated_store_failures_escalate(fake_graph, fake_cache):
    addresses = [addr(char) for char in "0123456789"]
    pipeline = _pipeline(
        DummySource(),
        MemoryRepository(fail=True),
        fake_graph,
        fake_cache,
        max_workers=1,
        max_consecutive_store_failures=3,
    )

    with pytest.raises(StoreUnavailableError) as excinfo:
        pipeline.sync_batch(addresses)

    results = excinfo.value.results
    assert len(results) == len(addresses)
    assert [result.error_kind for result in results[:3]] == ["store_write"] * 3
    assert all(result.error_kind == "cancelled" for result in results[3:])
    assert fake_graph.nodes == {}


def test_single_store_failure_does_not_escalate(fake_graph, fake_cache):
    pipeline = _pipeline(
        DummySource(), MemoryRepository(fail=True), fake_graph, fake_cache, max_consecutive_store_failures=5
    )

    results = pipeline.sync_batch([addr("1"), addr("2")])

    assert [result.error_kind for result in results] == ["store_write", "store_write"]


def test_resync_keeps_stored_first_seen_in_every_store(repository, fake_graph, fake_cache):
    base = int(NOW.timestamp())

    class ShiftingSource:
        def __init__(self):
            self.samples = [
                [make_tx(addr("a"), addr("b"), "1", base - 10 * 86400), make_tx(addr("b"), addr("a"), "1", base - 3600)],
                [make_tx(addr("a"), addr("b"), "1", base)],
            ]

        def fetch_wallet(self, address, sample_size):
            return WalletDetail(
                address=address,
                balance=Decimal("1"),
                balance_usd=3000.0,
                transaction_count=5,
                transactions=self.samples.pop(0),
            )

    pipeline = _pipeline(ShiftingSource(), repository, fake_graph, fake_cache)

    pipeline.sync_wallet(addr("a"), force=True)
    result = pipeline.sync_wallet(addr("a"), force=True)

    original = NOW - timedelta(days=10)
    assert repository.get_wallet(addr("a")).first_seen == original
    assert result.wallet.first_seen == original
    assert result.wallet.last_activity == NOW
    cached = fake_cache.values[f"wallet_details:{addr('a')}"]
    assert cached["first_seen"] == original.isoformat().replace("+00:00", "Z")
    assert fake_graph.nodes[addr("a")]["first_seen"] == original


def test_configuration_failures_escalate_with_their_cause(fake_graph, fake_cache):
    class UnconfiguredSource:
        def fetch_wallet(self, address, sample_size):
            raise ConfigurationError("ETHERSCAN_API_KEY environment variable is required for ingestion")

    addresses = [addr(char) for char in "012345"]
    pipeline = _pipeline(
        UnconfiguredSource(), MemoryRepository(), fake_graph, fake_cache, max_workers=1, max_consecutive_store_failures=2
    )

    with pytest.raises(StoreUnavailableError) as excinfo:
        pipeline.sync_batch(addresses)

    results = excinfo.value.results
    assert [result.error_kind for result in results[:2]] == ["configuration", "configuration"]
    assert all(result.error_kind == "cancelled" for result in results[2:])
    assert "configuration" in results[-1].error
    assert "relational" not in results[-1].error
