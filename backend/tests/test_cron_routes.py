# Overview: Pytest coverage for the scheduler endpoints and cron secret enforcement.

import pytest

from app.models import InventorySnapshot, Sale
from conftest import add_inventory, square_order


HEADERS = {"X-Cron-Secret": "cron-test-secret"}


@pytest.fixture
def synced_tenant(connected_a, square):
    add_inventory(connected_a, ("Flour", 3, "kg"))
    square.add_orders("token-a", square_order("O1", "2030-01-01T00:00:00Z"))
    return connected_a


class TestCronSecret:
    @pytest.mark.parametrize("path", ["/api/cron/sync", "/api/cron/inventory-snapshot"])
    def test_missing_secret_is_rejected(self, client, services, path):
        response = client.post(path)

        assert response.status_code == 401
        assert response.json["error"]["message"] == "Unauthorized"

    def test_wrong_secret_is_rejected(self, client, services):
        response = client.post('/api/cron/sync', headers={"X-Cron-Secret": "guess"})
        assert response.status_code == 401

    def test_unconfigured_secret_rejects_everything(self, client, make_services, db_session):
        make_services(cron_secret="")

        assert client.post('/api/cron/sync', headers={"X-Cron-Secret": ""}).status_code == 401
        assert client.post('/api/cron/sync', headers=HEADERS).status_code == 401

    def test_get_not_allowed(self, client, services):
        assert client.get('/api/cron/sync', headers=HEADERS).status_code == 405


class TestCronSync:
    def test_sync_runs_snapshot_and_orders(self, client, services, synced_tenant, db_session):
        response = client.post('/api/cron/sync', headers=HEADERS)

        assert response.status_code == 200
        body = response.json
        assert body["success"] is True
        assert body["summary"]["total"] == 1
        assert body["summary"]["tenants"][0]["slug"] == "cafe-alpha"
        assert db_session.query(InventorySnapshot).count() == 1

    def test_tenant_failure_is_in_summary_not_500(self, client, services, synced_tenant, square):
        square.failing_tokens["token-a"] = 503

        response = client.post('/api/cron/sync', headers=HEADERS)

        assert response.status_code == 200
        assert response.json["summary"]["failed"] == 1
        assert response.json["summary"]["tenants"][0]["status"] == "failed"

    def test_run_failure_is_500_with_details(self, client, services, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(services.orchestrator, "run", explode)

        response = client.post('/api/cron/sync', headers=HEADERS)

        assert response.status_code == 500
        assert response.json["error"]["message"] == "Failed to sync Square orders"
        assert response.json["error"]["details"] == "database unavailable"


class TestCronInventorySnapshot:
    def test_snapshot_only(self, client, services, synced_tenant, square, db_session):
        response = client.post('/api/cron/inventory-snapshot', headers=HEADERS)

        assert response.status_code == 200
        assert response.json["message"] == "Inventory snapshots created successfully"
        assert db_session.query(InventorySnapshot).count() == 1
        assert db_session.query(Sale).count() == 0
        assert square.calls("/v2/orders/search") == []

    def test_second_call_same_day_adds_nothing(self, client, services, synced_tenant, db_session):
        client.post('/api/cron/inventory-snapshot', headers=HEADERS)
        client.post('/api/cron/inventory-snapshot', headers=HEADERS)

        assert db_session.query(InventorySnapshot).count() == 1
