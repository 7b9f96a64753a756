import pytest
from fastapi.testclient import TestClient

from commercial_pricing.api.main import app
from commercial_pricing.api.state import get_context


@pytest.fixture
def client(ctx):
    app.dependency_overrides[get_context] = lambda: ctx
    yield TestClient(app)
    app.dependency_overrides.clear()


AT = "2026-06-01T12:00:00Z"


def test_root(client):
    assert client.get("/").json()["status"] == "online"


def test_status(client):
    data = client.get("/system/status").json()
    assert data["fixtures_status"] == "success"
    assert data["items"] == 6


def test_simulate(client):
    resp = client.post("/simulate", json={"item_id": "itm-001", "channel_id": "ch-web", "at": AT, "quantity": 2})
    assert resp.status_code == 200
    data = resp.json()
    assert data["is_sellable"] is True
    assert float(data["final_price"]) == 90.0
    assert float(data["total_price"]) == 180.0
    assert data["offer_id"] == "of-001"
    assert [s["status"] for s in data["steps"]] == ["success"] * 5


def test_simulate_unsellable(client):
    data = client.post("/simulate", json={"item_id": "itm-005", "channel_id": "ch-web", "at": AT}).json()
    assert data["is_sellable"] is False
    assert data["errors"][0].startswith("Allocation:")


def test_simulate_unknown_item(client):
    resp = client.post("/simulate", json={"item_id": "nope", "channel_id": "ch-web"})
    assert resp.status_code == 404


def test_simulate_rejects_zero_quantity(client):
    resp = client.post("/simulate", json={"item_id": "itm-001", "channel_id": "ch-web", "quantity": 0})
    assert resp.status_code == 422


def test_offer_price(client):
    data = client.get("/offers/of-001/price").json()
    assert float(data["base_price"]) == 100.0
    assert float(data["final_price"]) == 90.0
    assert float(data["discount_percent"]) == 10.0
    assert client.get("/offers/of-404/price").status_code == 404


def test_offer_resolve(client):
    data = client.post("/offers/resolve", json={
        "item_id": "itm-001", "channel_id": "ch-web", "at": AT,
    }).json()
    assert data["offer_id"] == "of-001"
    assert data["benefit"] == "10% off"


def test_policy_dry_run_and_execute(client, store):
    data = client.post("/policies/pol-index/dry-run", json={"at": AT}).json()
    assert data["execution_type"] == "dry_run"
    assert float(data["changes"][0]["new_price"]) == 86.0
    assert store.get_price_book("pb-fr-web-h2").entries["itm-001"].base_price == 110

    data = client.post("/policies/pol-index/execute", json={"at": AT}).json()
    assert data["status"] == "success"
    assert store.get_price_book("pb-fr-web-h2").entries["itm-001"].base_price == 86


def test_execute_draft_policy_is_rejected(client):
    resp = client.post("/policies/pol-ref/execute")
    assert resp.status_code == 400
    assert "only Active policies can be executed" in resp.json()["detail"]["reasons"][0]


def test_bundle_price(client):
    data = client.get("/bundles/bd-001/price", params={"price_book_id": "pb-fr-web"}).json()
    assert float(data["components_total"]) == 110.0
    assert float(data["final_price"]) == 88.0

    resp = client.get("/bundles/bd-001/price")
    assert resp.status_code == 400


def test_activate_price_book(client, store, audit):
    resp = client.post("/price-books/pb-fr-web-h2/activate", json={"approver_id": "apr-001"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "active"
    assert store.get_price_book("pb-fr-web").is_expired()


def test_activate_price_book_without_rights(client):
    resp = client.post("/price-books/pb-fr-web-h2/activate", json={"approver_id": "apr-002"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["reasons"] == ["approver 'apr-002' does not have approval permissions"]
