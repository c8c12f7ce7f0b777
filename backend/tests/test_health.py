def test_health_returns_ok(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_sync_routes_are_mounted(client):
    # an invalid body reaches validation only when the route exists
    assert client.post("/sync/wallets", json={"addresses": []}).status_code == 422
    assert client.post("/sync/tokens", json={"token_ids": []}).status_code == 422
    assert client.get("/sync/unknown").status_code == 404
