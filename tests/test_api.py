import pytest
from fastapi.testclient import TestClient

from conftest import FailingProvider, FixedRng, make_order, make_queue
from shiptrack.main import create_app
from shiptrack.models.domain import LogisticsCompany
from shiptrack.persistence.memory import InMemoryOrderStore
from shiptrack.services.runtime import TrackingRuntime


@pytest.fixture
def runtime():
    store = InMemoryOrderStore()
    store.add_logistics_company(LogisticsCompany(name="SF Express", speed=0.5))
    store.add_order(make_order("o1"))
    provider = FailingProvider()
    return TrackingRuntime.build(
        store=store,
        provider=provider,
        route_queue=make_queue(provider),
        speed_factor=1.0,
        rng=FixedRng(1.0),
    )


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as client:
        yield client


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["active_trajectories"] == 0


def test_ship_then_track_and_step(client):
    response = client.post("/api/orders/o1/ship")
    assert response.status_code == 200
    body = response.json()
    assert body["order"]["status"] == "SHIPPING"
    assert body["route"]["total_steps"] == 20
    assert client.get("/api/health").json()["active_trajectories"] == 1

    response = client.post("/api/orders/o1/step")
    assert response.status_code == 200
    lng, lat = body["route"]["points"][1]
    assert response.json()["current_location"] == {"lng": lng, "lat": lat}

    tracking = client.get("/api/tracking/ORD-o1").json()
    assert tracking["route"]["current_step"] == 1
    assert tracking["progress"] > 0
    assert tracking["timeline"][0]["status"] == "PICKED_UP"


def test_ship_twice_is_rejected(client):
    assert client.post("/api/orders/o1/ship").status_code == 200

    response = client.post("/api/orders/o1/ship")

    assert response.status_code == 400


def test_cancel_shipping_order(client):
    client.post("/api/orders/o1/ship")

    response = client.post("/api/orders/o1/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert client.get("/api/health").json()["active_trajectories"] == 0


def test_deliver_shipping_order(client):
    client.post("/api/orders/o1/ship")

    response = client.post("/api/orders/o1/deliver")

    assert response.status_code == 200
    assert response.json()["status"] == "DELIVERED"
    assert response.json()["current_location"] == {"lng": 116.50, "lat": 40.00}


def test_unknown_order_returns_404(client):
    assert client.post("/api/orders/nope/ship").status_code == 404
    assert client.get("/api/tracking/ORD-nope").status_code == 404


def test_acquire_route_falls_back(client):
    response = client.post("/api/routes/acquire", json={
        "origin": {"lng": 116.40, "lat": 39.90},
        "destination": {"lng": 116.50, "lat": 40.00},
    })

    assert response.status_code == 200
    body = response.json()
    assert len(body["points"]) == 20
    assert body["time_array"][0] == 0
    assert body["total_time_seconds"] == body["time_array"][-1]


def test_plan_rejects_mixed_origins(client):
    response = client.post("/api/routes/plan", json={"orders": [
        {"id": "a", "origin": {"lng": 116.40, "lat": 39.90}, "destination": {"lng": 116.50, "lat": 40.00}},
        {"id": "b", "origin": {"lng": 121.47, "lat": 31.23}, "destination": {"lng": 121.50, "lat": 31.30}},
    ]})

    assert response.status_code == 400


def test_plan_returns_route_per_order(client):
    response = client.post("/api/routes/plan", json={"orders": [
        {"id": "a", "origin": {"lng": 116.40, "lat": 39.90}, "destination": {"lng": 116.50, "lat": 40.00}},
        {"id": "b", "origin": {"lng": 116.40, "lat": 39.90}, "destination": {"lng": 116.60, "lat": 40.10}},
    ]})

    assert response.status_code == 200
    routes = response.json()["routes"]
    assert set(routes) == {"a", "b"}
    assert len(routes["b"]["points"]) > len(routes["a"]["points"])


def test_batch_ship_requires_ids(client):
    assert client.post("/api/orders/batch-ship", json={"order_ids": []}).status_code == 422


def test_live_tracking_sends_current_location(client):
    client.post("/api/orders/o1/ship")

    with client.websocket_connect("/api/tracking/ws/ORD-o1") as websocket:
        first = websocket.receive_json()

    assert first["event"] == "location_update"
    assert first["data"]["location"] == {"lng": 116.40, "lat": 39.90}


def test_storage_health_reports_memory_backend(client):
    body = client.get("/api/health/storage").json()

    assert body["backend"] == "memory"
    assert body["healthy"] is True
