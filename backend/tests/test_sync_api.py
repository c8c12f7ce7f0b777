from types import SimpleNamespace

import pytest

from chainsync.api import sync as sync_module
from chainsync.errors import ConfigurationError, StoreUnavailableError
from chainsync.models import (
    EthereumQuote,
    GasTracker,
    MarketSnapshot,
    NetworkStats,
    PopularWallet,
    SyncResult,
    SyncStatus,
    TokenPrice,
)
from conftest import NOW, addr


class DummyWalletPipeline:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def sync_batch(self, addresses, force=False):
        self.calls.append((list(addresses), force))
        if self.error:
            raise self.error
        results = []
        for address in addresses:
            if address == addr("f"):
                results.append(
                    SyncResult(address=address, ok=False, status=SyncStatus.FAILED, error="down", error_kind="external_source")
                )
            elif address == addr("e"):
                results.append(SyncResult(address=address, ok=True, status=SyncStatus.SKIPPED, skipped=True))
            else:
                results.append(SyncResult(address=address, ok=True, status=SyncStatus.SUCCEEDED))
        return results

    def sync_wallet(self, address, force=False):
        self.calls.append((address, force))
        if not address.startswith("0x"):
            return SyncResult(
                address=address, ok=False, status=SyncStatus.FAILED, error="bad address", error_kind="invalid_input"
            )
        return SyncResult(address=address, ok=True, status=SyncStatus.SUCCEEDED)


class DummyMarketPipeline:
    def __init__(self, cached=True):
        self.cached = cached

    def _snapshot(self):
        return MarketSnapshot(
            ethereum=EthereumQuote(price=2600.5),
            gas_tracker=GasTracker(),
            network_stats=NetworkStats(),
            degraded_sources=["gas_tracker"],
        )

    def sync_market_data(self):
        return self._snapshot()

    def latest_snapshot(self):
        return self._snapshot() if self.cached else None

    def sync_token_prices(self, token_ids):
        return [TokenPrice(token_id=token_id, price=1.0) for token_id in token_ids]


class DummyRanker:
    def discover_popular(self):
        return [
            PopularWallet(
                address=addr("a"),
                transaction_count=5000,
                balance="1",
                balance_usd=10.0,
                activity_score=99.5,
                last_activity=NOW,
            )
        ]


@pytest.fixture()
def services(monkeypatch):
    fake = SimpleNamespace(
        wallet_pipeline=DummyWalletPipeline(),
        market_pipeline=DummyMarketPipeline(),
        ranker=DummyRanker(),
    )
    monkeypatch.setattr(sync_module, "get_services", lambda: fake)
    return fake


def test_sync_wallets_summarizes_results(client, services):
    response = client.post("/sync/wallets", json={"addresses": [addr("a"), addr("e"), addr("f")], "force": True})

    assert response.status_code == 200
    body = response.json()
    assert [item["address"] for item in body["results"]] == [addr("a"), addr("e"), addr("f")]
    assert (body["succeeded"], body["skipped"], body["failed"]) == (1, 1, 1)
    assert services.wallet_pipeline.calls[0][1] is True


def test_sync_wallets_rejects_empty_batch(client, services):
    response = client.post("/sync/wallets", json={"addresses": []})
    assert response.status_code == 422


def test_store_outage_returns_503(client, services):
    services.wallet_pipeline.error = StoreUnavailableError("5 consecutive store failures")

    response = client.post("/sync/wallets", json={"addresses": [addr("a")]})

    assert response.status_code == 503


def test_missing_configuration_returns_503(client, monkeypatch):
    def fail():
        raise ConfigurationError("Missing configuration: DATABASE_URL")

    monkeypatch.setattr(sync_module, "get_services", fail)

    response = client.post("/sync/market")

    assert response.status_code == 503
    assert "DATABASE_URL" in response.json()["detail"]


def test_single_wallet_invalid_address_is_400(client, services):
    response = client.post("/sync/wallets/not-an-address")
    assert response.status_code == 400


def test_single_wallet_passes_force(client, services):
    response = client.post(f"/sync/wallets/{addr('a')}", params={"force": "true"})

    assert response.status_code == 200
    assert response.json()["status"] == "succeeded"
    assert services.wallet_pipeline.calls == [(addr("a"), True)]


def test_market_sync_reports_degraded_sources(client, services):
    response = client.post("/sync/market")

    assert response.status_code == 200
    assert response.json()["degraded_sources"] == ["gas_tracker"]
    assert response.json()["gas_tracker"]["standard"] == 25.0


def test_latest_market_404_when_nothing_cached(client, services):
    services.market_pipeline.cached = False
    assert client.get("/sync/market/latest").status_code == 404

    services.market_pipeline.cached = True
    assert client.get("/sync/market/latest").json()["ethereum"]["price"] == 2600.5


def test_token_prices(client, services):
    response = client.post("/sync/tokens", json={"token_ids": ["bitcoin", "chainlink"]})

    assert response.status_code == 200
    assert [item["token_id"] for item in response.json()] == ["bitcoin", "chainlink"]


def test_discover_popular(client, services):
    response = client.post("/sync/popular")

    assert response.status_code == 200
    assert response.json()[0]["activity_score"] == 99.5
