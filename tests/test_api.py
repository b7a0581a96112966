"""Tests for the webhook operations REST API."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from conftest import RecordingHandler
from picksearch import __version__
from picksearch.api import create_app
from picksearch.models import DeliveryResult, Partner, WebhookDelivery
from picksearch.webhooks import get_dispatcher

PAYLOAD = '{"data":{"survey_id":"s1"},"event":"survey.deployed","timestamp":"2025-01-01T00:00:00.000Z"}'


def seed(store, status: str = "exhausted", partner_id: str = "ptn_1") -> WebhookDelivery:
    """Insert a delivery record in the given state."""
    delivery = WebhookDelivery(
        partner_id=partner_id,
        url="https://old.partner.test/hook",
        event="survey.deployed",
        payload=PAYLOAD,
        sequence=1,
        max_attempts=3,
    )
    if status == "exhausted":
        delivery.record_attempt(DeliveryResult(outcome="rejected", status_code=410, reason="Gone"))
        delivery.mark_exhausted()
    elif status == "delivered":
        delivery.record_attempt(DeliveryResult(outcome="delivered", status_code=200, reason="OK"))
        delivery.mark_delivered()
    asyncio.run(store.log_delivery(delivery))
    return delivery


@pytest.fixture
def handler():
    return RecordingHandler(200)


@pytest.fixture
def app(settings, make_dispatcher, handler, partner):
    """Create a test app whose dispatcher resolves ptn_1 and sends to a mock transport."""

    async def lookup(partner_id: str) -> Partner | None:
        return partner if partner_id == partner.id else None

    return create_app(settings=settings, dispatcher=make_dispatcher(handler, partner_lookup=lookup))


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health(self, app):
        """Should report healthy with no deliveries in flight."""
        with TestClient(app) as client:
            response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "version": __version__,
            "pending_deliveries": 0,
        }

    def test_lifespan_installs_dispatcher(self, app):
        with TestClient(app) as client:
            client.get("/api/v1/health")
            installed = get_dispatcher()
            assert installed.pending_count == 0
        assert get_dispatcher() is not installed


class TestListDeliveries:
    """Tests for GET /webhooks/deliveries."""

    def test_empty(self, app):
        with TestClient(app) as client:
            response = client.get("/api/v1/webhooks/deliveries")

        assert response.status_code == 200
        assert response.json() == {"deliveries": [], "count": 0}

    def test_filters_dead_letters(self, app, store):
        dead = seed(store, "exhausted")
        seed(store, "delivered")
        seed(store, "exhausted", partner_id="ptn_2")

        with TestClient(app) as client:
            response = client.get(
                "/api/v1/webhooks/deliveries",
                params={"status": "exhausted", "partner_id": "ptn_1"},
            )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        record = data["deliveries"][0]
        assert record["id"] == dead.id
        assert record["status"] == "exhausted"
        assert record["last_status_code"] == 410
        assert record["payload"] == PAYLOAD

    def test_limit(self, app, store):
        for _ in range(3):
            seed(store)

        with TestClient(app) as client:
            response = client.get("/api/v1/webhooks/deliveries", params={"limit": 2})

        assert response.json()["count"] == 2

    @pytest.mark.parametrize("params", [{"status": "bogus"}, {"limit": 0}, {"limit": 5000}])
    def test_invalid_query(self, app, params):
        with TestClient(app) as client:
            response = client.get("/api/v1/webhooks/deliveries", params=params)
        assert response.status_code == 422


class TestGetDelivery:
    """Tests for GET /webhooks/deliveries/{id}."""

    def test_found(self, app, store):
        delivery = seed(store, "delivered")
        with TestClient(app) as client:
            response = client.get(f"/api/v1/webhooks/deliveries/{delivery.id}")

        assert response.status_code == 200
        assert response.json()["status"] == "delivered"

    def test_not_found(self, app):
        with TestClient(app) as client:
            response = client.get("/api/v1/webhooks/deliveries/dlv_missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"


class TestReplayDelivery:
    """Tests for POST /webhooks/deliveries/{id}/replay."""

    def test_replay_dead_letter(self, app, store, handler):
        dead = seed(store, "exhausted")

        with TestClient(app) as client:
            response = client.post(f"/api/v1/webhooks/deliveries/{dead.id}/replay")
        # Leaving the client drains in-flight deliveries

        assert response.status_code == 202
        data = response.json()
        assert data["replay_of"] == dead.id
        assert data["url"] == "https://partner.test/hook"
        assert data["status"] == "pending"

        assert len(handler.requests) == 1
        assert handler.requests[0].content == PAYLOAD.encode()
        replayed = asyncio.run(store.get_delivery(data["id"]))
        assert replayed.status == "delivered"

    def test_replay_not_exhausted(self, app, store, handler):
        delivered = seed(store, "delivered")
        with TestClient(app) as client:
            response = client.post(f"/api/v1/webhooks/deliveries/{delivered.id}/replay")

        assert response.status_code == 400
        assert response.json()["error"]["field"] == "status"
        assert handler.requests == []

    def test_replay_unknown(self, app):
        with TestClient(app) as client:
            response = client.post("/api/v1/webhooks/deliveries/dlv_missing/replay")
        assert response.status_code == 404

    def test_replay_partner_removed(self, app, store):
        dead = seed(store, "exhausted", partner_id="ptn_gone")
        with TestClient(app) as client:
            response = client.post(f"/api/v1/webhooks/deliveries/{dead.id}/replay")

        assert response.status_code == 404
        assert response.json()["error"]["resource_type"] == "partner"

    def test_replay_without_partner_lookup(self, settings, make_dispatcher, store):
        app = create_app(settings=settings, dispatcher=make_dispatcher(RecordingHandler(200)))
        dead = seed(store, "exhausted")

        with TestClient(app) as client:
            response = client.post(f"/api/v1/webhooks/deliveries/{dead.id}/replay")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "configuration_error"
