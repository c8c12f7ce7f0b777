import json
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure the backend package is importable
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chainsync.db.postgres import build_engine, metadata  # noqa: E402  pylint: disable=wrong-import-position
from chainsync.db.wallet_repository import WalletRepository  # noqa: E402
from chainsync.errors import StoreWriteFailure  # noqa: E402
from chainsync.main import app  # noqa: E402
from chainsync.models import TransactionSample  # noqa: E402

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def addr(char):
    return "0x" + char * 40


def make_tx(sender, receiver, value="1", timestamp=None, block=1, tx_hash=None):
    timestamp = int(timestamp if timestamp is not None else NOW.timestamp())
    return TransactionSample(
        hash=tx_hash or f"0x{sender[2:6]}{receiver[2:6]}{timestamp}",
        from_address=sender,
        to_address=receiver,
        value=Decimal(value),
        timestamp=timestamp,
        block_number=block,
    )


class FakeCache:
    def __init__(self, fail=False):
        self.fail = fail
        self.values = {}
        self.ttls = {}

    def set_json(self, key, value, ttl_seconds):
        if self.fail:
            raise StoreWriteFailure("cache", f"SET {key} failed")
        from chainsync.db.cache import _to_jsonable

        self.values[key] = json.loads(json.dumps(_to_jsonable(value), default=str, sort_keys=True))
        self.ttls[key] = ttl_seconds

    def get_json(self, key):
        return self.values.get(key)


class FakeGraph:
    def __init__(self, fail=False):
        self.fail = fail
        self.nodes = {}
        self.edges = {}

    def upsert_wallet(self, record, edges):
        if self.fail:
            raise StoreWriteFailure("graph", "neo4j unavailable")
        self.nodes[record.address] = record.model_dump()
        for edge in edges:
            self.edges[(record.address, edge["counterparty"])] = dict(edge)


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://")
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def repository(engine):
    return WalletRepository(engine)


@pytest.fixture()
def fake_cache():
    return FakeCache()


@pytest.fixture()
def fake_graph():
    return FakeGraph()
