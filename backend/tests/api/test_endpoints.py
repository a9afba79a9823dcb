"""
API Endpoint Tests

Tests the FastAPI endpoints using TestClient with the mock bus.
"""

import time

import pytest
from fastapi.testclient import TestClient

import api.dependencies
from api.app import create_app
from api.dependencies import AppState
from core.serial_transport import SerialConfig, SerialTransport
from core.settings_store import SettingsStore

FAST = {
    "pre_start_delay": 0,
    "hold_duration": 0,
    "arrival_wait": 0,
    "post_dispatch_wait": 0,
    "poll_interval": 0.01,
}


@pytest.fixture
def client(tmp_path):
    """Create test client with fresh app state and a throwaway settings file."""
    api.dependencies._app_state = AppState(settings=SettingsStore(tmp_path / "settings.json"))

    app = create_app()
    with TestClient(app) as client:
        yield client

    # Cleanup
    api.dependencies._app_state.disconnect()
    api.dependencies._app_state = None


@pytest.fixture
def connected_client(client):
    """Client connected to the mock bus with zero holds."""
    response = client.put("/api/settings", json=FAST)
    assert response.json()["success"]
    response = client.post("/api/connect", json={"port": "mock"})
    assert response.json()["success"]
    return client


def wait_for(client, predicate, timeout=2.0):
    """Poll /api/sequence/state until predicate(body) holds."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get("/api/sequence/state").json()
        if predicate(body):
            return body
        time.sleep(0.01)
    raise AssertionError("condition not reached")


class TestConnectionEndpoints:
    """Test connection endpoints."""

    def test_get_status_disconnected(self, client):
        """Status shows disconnected initially."""
        response = client.get("/api/status")
        assert response.status_code == 200
        data = response.json()
        assert data["connected"] is False
        assert data["state"] is None

    def test_connect_mock(self, client):
        """Can connect to the mock bus."""
        response = client.post("/api/connect", json={"port": "mock"})
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get("/api/status").json()["connected"] is True

    def test_connect_twice(self, connected_client):
        response = connected_client.post("/api/connect", json={"port": "mock"})
        assert response.json() == {"success": False, "message": "Already connected"}

    def test_serial_bus_needs_feed_port(self, client):
        response = client.post("/api/connect", json={"port": "/dev/ttyUSB9"})
        assert response.json()["success"] is False

    def test_feed_port_failure_closes_bus(self, client, monkeypatch, fake_ports):
        monkeypatch.setattr(api.dependencies, "SerialTransport",
                            lambda: SerialTransport(SerialConfig(connect_delay=0)))
        fake_ports.refuse.add("/dev/ttyFEED")

        response = client.post("/api/connect",
                               json={"port": "/dev/ttyBUS", "feed_port": "/dev/ttyFEED"})
        assert response.json()["success"] is False
        assert fake_ports.opened[0].closed
        assert client.get("/api/status").json()["connected"] is False

    def test_disconnect(self, connected_client):
        response = connected_client.post("/api/disconnect")
        assert response.json()["success"] is True
        assert connected_client.get("/api/status").json()["connected"] is False

    def test_history_empty(self, connected_client):
        assert connected_client.get("/api/history").json() == {"history": []}


class TestSequenceEndpoints:
    """Run, observe and cancel sequences over the API."""

    def test_run_requires_connection(self, client):
        response = client.post("/api/sequence/run")
        assert response.status_code == 400

    def test_full_run(self, connected_client):
        assert connected_client.post("/api/sequence/run").json()["success"]
        wait_for(connected_client, lambda b: b["state"] == "CONVEYOR_RUNNING_TO_POINT")

        response = connected_client.post("/api/sequence/frame", json={"coordinates": [0.004]})
        assert response.json() == {"success": True, "models": 1}

        body = wait_for(connected_client, lambda b: b["last_result"] is not None)
        assert body["running"] is False
        assert body["state"] == "DONE"
        assert body["history"][0] == "INIT"
        assert body["history"][-1] == "DONE"
        assert body["last_result"]["outcome"] == "COMPLETED"

        history = connected_client.get("/api/history").json()["history"]
        assert [h["request"] for h in history] == [
            "start_competition",
            "conveyor/control power=100.00",
            "conveyor/control power=0.00",
            "conveyor/control power=100.00",
            "drone shipment_type=order_0_shipment_0",
        ]

    def test_run_while_running_conflicts(self, connected_client):
        connected_client.post("/api/sequence/run")
        wait_for(connected_client, lambda b: b["running"])

        response = connected_client.post("/api/sequence/run")
        assert response.status_code == 409

        connected_client.post("/api/sequence/cancel")

    def test_cancel(self, connected_client):
        connected_client.post("/api/sequence/run")
        wait_for(connected_client, lambda b: b["state"] == "CONVEYOR_RUNNING_TO_POINT")

        assert connected_client.post("/api/sequence/cancel").json()["success"] is True
        body = wait_for(connected_client, lambda b: b["last_result"] is not None)
        assert body["last_result"]["outcome"] == "CANCELLED"
        assert body["state"] == "CONVEYOR_RUNNING_TO_POINT"

    def test_cancel_when_idle(self, connected_client):
        assert connected_client.post("/api/sequence/cancel").json()["success"] is False

    def test_frame_injection_needs_mock_bus(self, client):
        client.post("/api/connect", json={"port": "sim"})
        response = client.post("/api/sequence/frame", json={"coordinates": [0.0]})
        assert response.status_code == 400


class TestSettingsEndpoints:

    def test_get_defaults(self, client):
        data = client.get("/api/settings").json()
        assert data["tolerance"] == 0.01
        assert data["shipment_id"] == "order_0_shipment_0"

    def test_partial_update(self, client):
        response = client.put("/api/settings", json={"hold_duration": 2.5})
        data = response.json()
        assert data["success"] is True
        assert data["settings"]["hold_duration"] == 2.5
        assert data["settings"]["arrival_wait"] == 15.0

    def test_clear_detection_timeout(self, client):
        client.put("/api/settings", json={"detection_timeout": 30})
        data = client.put("/api/settings", json={"detection_timeout": None}).json()
        assert data["settings"]["detection_timeout"] is None

    def test_invalid_value(self, client):
        response = client.put("/api/settings", json={"tolerance": -1})
        assert response.status_code == 422
        assert client.get("/api/settings").json()["tolerance"] == 0.01

    @pytest.mark.parametrize("body", [
        {"shipment_id": "order 0"},
        {"shipment_id": ""},
        {"detection_timeout": 0},
        {"reachability_timeout": -1},
    ])
    def test_rejected_values(self, client, body):
        response = client.put("/api/settings", json=body)
        assert response.status_code == 422
        assert client.get("/api/settings").json()["shipment_id"] == "order_0_shipment_0"

    def test_reset(self, client):
        client.put("/api/settings", json={"hold_duration": 2.5})
        data = client.post("/api/settings/reset").json()
        assert data["settings"]["hold_duration"] == 5.0
