"""Tests for the management HTTP API."""

from __future__ import annotations

import uuid

import httpx
import pytest
from starlette.testclient import TestClient

from provider_manager.config import build_config
from provider_manager.constants import API_PREFIX
from provider_manager.health import LivenessProber
from provider_manager.runtime import ProviderManagerService
from provider_manager.server.app import create_app

PROVIDER = {
    "name": "vm-provider",
    "service_type": "vm",
    "schema_version": "v1alpha1",
    "endpoint": "http://vm.local:8081",
}


def _url(path: str) -> str:
    return f"{API_PREFIX}{path}"


@pytest.fixture
def service():
    config = build_config({"database": {"type": "memory"}}, environ={})
    prober = LivenessProber(timeout=1.0, transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    return ProviderManagerService(config, prober=prober)


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as test_client:
        yield test_client


class TestHealth:
    def test_running(self, client) -> None:
        resp = client.get(_url("/health"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["state"] == "running"

    def test_not_started(self, service) -> None:
        # without the context manager the lifespan never runs
        resp = TestClient(create_app(service)).get(_url("/health"))
        assert resp.status_code == 503
        assert resp.json()["status"] == "unavailable"


class TestProviders:
    def test_register_then_update(self, client) -> None:
        created = client.post(_url("/providers"), json=PROVIDER)
        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "registered"
        assert body["health_status"] == "ready"
        assert body["consecutive_failures"] == 0
        assert "next_health_check" not in body

        again = client.post(_url("/providers"), json={**PROVIDER, "endpoint": "http://vm2.local"})
        assert again.status_code == 200
        assert again.json()["status"] == "updated"
        assert again.json()["id"] == body["id"]

    def test_register_with_id(self, client) -> None:
        pid = str(uuid.uuid4())
        resp = client.post(_url("/providers"), params={"id": pid}, json=PROVIDER)
        assert resp.status_code == 201
        assert resp.json()["id"] == pid

    def test_register_conflict(self, client) -> None:
        client.post(_url("/providers"), json=PROVIDER)
        resp = client.post(_url("/providers"), params={"id": str(uuid.uuid4())}, json=PROVIDER)
        assert resp.status_code == 409
        assert resp.json()["error"] == "conflict"

    def test_register_invalid_body(self, client) -> None:
        resp = client.post(_url("/providers"), json={**PROVIDER, "endpoint": "vm.local"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "invalid_argument"
        assert body["details"][0]["loc"] == ["endpoint"]

    def test_register_not_json(self, client) -> None:
        resp = client.post(
            _url("/providers"), content=b"{not json", headers={"content-type": "application/json"}
        )
        assert resp.status_code == 400

    def test_register_non_object(self, client) -> None:
        resp = client.post(_url("/providers"), json=[PROVIDER])
        assert resp.status_code == 400

    def test_list_filter(self, client) -> None:
        client.post(_url("/providers"), json=PROVIDER)
        client.post(_url("/providers"), json={**PROVIDER, "name": "db", "service_type": "db"})

        assert len(client.get(_url("/providers")).json()["providers"]) == 2
        vms = client.get(_url("/providers"), params={"type": "vm"}).json()["providers"]
        assert [p["name"] for p in vms] == ["vm-provider"]

    def test_get_update_delete(self, client) -> None:
        pid = client.post(_url("/providers"), json=PROVIDER).json()["id"]

        assert client.get(_url(f"/providers/{pid}")).json()["name"] == "vm-provider"

        updated = client.put(_url(f"/providers/{pid}"), json={**PROVIDER, "schema_version": "v1"})
        assert updated.status_code == 200
        assert updated.json()["schema_version"] == "v1"

        assert client.delete(_url(f"/providers/{pid}")).status_code == 204
        assert client.get(_url(f"/providers/{pid}")).status_code == 404
        assert client.delete(_url(f"/providers/{pid}")).status_code == 404

    def test_bad_id(self, client) -> None:
        resp = client.get(_url("/providers/not-a-uuid"))
        assert resp.status_code == 400
        assert resp.json()["message"] == "invalid provider ID format"

    def test_update_missing(self, client) -> None:
        resp = client.put(_url(f"/providers/{uuid.uuid4()}"), json=PROVIDER)
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"


class TestMonitorAndEvents:
    def test_monitor_status(self, client) -> None:
        body = client.get(_url("/monitor")).json()
        assert body["running"] is True
        assert body["config"] == {
            "interval": 10.0,
            "timeout": 5.0,
            "max_consecutive_failures": 3,
            "base_backoff_interval": 10.0,
            "max_backoff_interval": 300.0,
        }

    def test_events(self, client) -> None:
        body = client.get(_url("/events"), params={"stage": "status", "limit": 1}).json()
        assert len(body["events"]) == 1
        assert body["events"][0]["stage"] == "status"

    def test_events_bad_limit(self, client) -> None:
        assert client.get(_url("/events"), params={"limit": "many"}).status_code == 400
