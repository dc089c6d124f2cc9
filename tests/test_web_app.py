"""Tests for web application with dependency injection."""

import time

import httpx
import pytest
from fastapi.testclient import TestClient

from attendee_discovery.config import Config, DiscoveryConfig
from attendee_discovery.context import AppContext
from attendee_discovery.discovery.service import DiscoveryService
from attendee_discovery.terminal.client import TerminalClient
from attendee_discovery.web.app import create_app, get_app_context
from tests.fakes import FakeProbe, json_transport, scenario_outcomes


@pytest.fixture
def context(fake_probe_factory):
    """Context scanning 192.168.1.100-102 with a scripted probe"""
    config = Config(
        discovery=DiscoveryConfig(subnet="192.168.1", priority_ranges=[(100, 102)], inter_batch_delay=0)
    )
    context = AppContext.create(config)
    context.discovery = DiscoveryService(
        config.discovery, probe_factory=fake_probe_factory(FakeProbe(scenario_outcomes()))
    )
    return context


@pytest.fixture
def terminal_routes(context, monkeypatch):
    """Route table served by every terminal the API talks to"""
    routes: dict = {}

    def terminal_client(address: str) -> TerminalClient:
        http = httpx.AsyncClient(transport=json_transport(routes))
        return TerminalClient(address, client=http)

    monkeypatch.setattr(context, "terminal_client", terminal_client)
    monkeypatch.setattr(context.monitor, "_client_factory", terminal_client)
    return routes


def wait_for_scan(client: TestClient, timeout: float = 2.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        data = client.get("/api/discovery").json()
        if data["status"] not in ("pending", "scanning") or time.monotonic() > deadline:
            return data
        time.sleep(0.01)


class TestWebAppCreation:
    """Test web app creation with and without context."""

    def test_create_app_without_context(self):
        """Test app can be created without context."""
        app = create_app(context=None)

        assert app.state.context is None
        assert get_app_context() is None

    def test_routes_unavailable_without_context(self):
        with TestClient(create_app(context=None)) as client:
            assert client.get("/health").status_code == 200
            assert client.get("/api/discovery").status_code == 503

    def test_create_app_with_context(self, context):
        """Test app receives injected context."""
        app = create_app(context=context)

        assert app.state.context is context
        assert get_app_context() is context


class TestDiscoveryRoutes:
    """Test scan session endpoints"""

    def test_no_session_yet(self, context):
        with TestClient(create_app(context)) as client:
            response = client.get("/api/discovery")
        assert response.status_code == 404

    def test_scan_lifecycle(self, context):
        with TestClient(create_app(context)) as client:
            response = client.post("/api/discovery/scan")
            assert response.status_code == 202
            assert response.json()["subnet"] == "192.168.1"

            data = wait_for_scan(client)

        assert data["status"] == "completed"
        assert data["count"] == 2
        assert data["message"] == "Found 2 devices on network"
        assert data["progress"]["percent"] == 100
        assert [d["address"] for d in data["devices"]] == ["192.168.1.100", "192.168.1.101"]
        assert data["devices"][0]["classification"] == "recognized"
        assert data["devices"][1]["display_name"] == "Network Device (192.168.1.101)"

    def test_scan_with_overrides(self, context):
        with TestClient(create_app(context)) as client:
            response = client.post(
                "/api/discovery/scan",
                json={"subnet": "10.0.0", "batch_size": 2, "probe_timeout": 0.2},
            )
            assert response.status_code == 202
            data = wait_for_scan(client)

        assert data["subnet"] == "10.0.0"
        assert data["batch_size"] == 2
        assert data["probe_timeout"] == 0.2
        assert data["progress"]["batches_total"] == 2

    def test_scan_invalid_subnet(self, context):
        with TestClient(create_app(context)) as client:
            response = client.post("/api/discovery/scan", json={"subnet": "192.168.300"})
        assert response.status_code == 400

    def test_scan_invalid_batch_size(self, context):
        with TestClient(create_app(context)) as client:
            response = client.post("/api/discovery/scan", json={"batch_size": 0})
        assert response.status_code == 422

    def test_cancel_without_scan(self, context):
        with TestClient(create_app(context)) as client:
            response = client.delete("/api/discovery")
        assert response.json() == {"cancelled": False}

    def test_subnets(self, context):
        with TestClient(create_app(context)) as client:
            data = client.get("/api/discovery/subnets").json()
        assert data["selected"] == "192.168.1"
        assert data["priority_ranges"] == [[100, 102]]
        assert "192.168.0" in data["subnets"]


class TestTerminalRoutes:
    """Test terminal management endpoints"""

    def test_get_config(self, context, terminal_routes):
        terminal_routes["GET /api/config"] = {"deviceId": "AABBCCDD", "firmwareVersion": "1.2.0"}
        with TestClient(create_app(context)) as client:
            response = client.get("/api/terminals/192.168.1.100/config")
        assert response.status_code == 200
        assert response.json()["firmwareVersion"] == "1.2.0"

    def test_update_config_returns_stored_config(self, context, terminal_routes):
        terminal_routes["POST /api/config"] = {"success": True, "message": "Saved"}
        terminal_routes["GET /api/config"] = {"deviceName": "Front desk", "deviceId": "AABBCCDD"}
        with TestClient(create_app(context)) as client:
            response = client.post(
                "/api/terminals/192.168.1.100/config", json={"deviceName": "Front desk"}
            )
        assert response.json() == {
            "success": True,
            "message": "Saved",
            "config": {"deviceName": "Front desk", "deviceId": "AABBCCDD"},
        }

    def test_update_config_when_reread_fails(self, context, terminal_routes):
        terminal_routes["POST /api/config"] = {"success": True}
        with TestClient(create_app(context)) as client:
            response = client.post("/api/terminals/192.168.1.100/config", json={"deviceName": "x"})
        assert response.status_code == 200
        assert response.json()["config"] is None

    def test_update_config_rejected(self, context, terminal_routes):
        terminal_routes["POST /api/config"] = {"success": False, "message": "Invalid URL"}
        with TestClient(create_app(context)) as client:
            response = client.post("/api/terminals/192.168.1.100/config", json={"backendUrl": "x"})
        assert response.status_code == 502
        assert response.json()["detail"]["message"] == "Invalid URL"

    def test_malformed_terminal_payload(self, context, terminal_routes):
        terminal_routes["GET /api/status"] = {"uptime": "n/a"}
        terminal_routes["POST /api/actions/sync"] = ["ok"]
        with TestClient(create_app(context)) as client:
            status = client.get("/api/terminals/192.168.1.100/status")
            sync = client.post("/api/terminals/192.168.1.100/actions/sync")
        assert status.status_code == 502
        assert status.json()["detail"]["message"] == "Failed to fetch device status"
        assert sync.status_code == 502
        assert sync.json()["detail"]["message"] == "Failed to perform sync"

    def test_status_and_logs(self, context, terminal_routes):
        terminal_routes["GET /api/status"] = {"systemInitialized": True, "uptime": 1000, "freeHeap": 2048}
        terminal_routes["GET /api/logs"] = {
            "offlineCount": 4,
            "filesystem": {"usedBytes": 50, "totalBytes": 200},
        }
        with TestClient(create_app(context)) as client:
            status = client.get("/api/terminals/192.168.1.100/status").json()
            logs = client.get("/api/terminals/192.168.1.100/logs").json()

        assert status["system_initialized"] is True
        assert status["free_heap"] == 2048
        assert status["display"] == {"uptime": "1s", "free_heap": "2 KB", "last_heartbeat": None}
        assert logs["offline_count"] == 4
        assert logs["usage_percent"] == 25.0
        assert logs["display"] == {"used": "50 B", "total": "200 B"}

    def test_firmware_list(self, context, terminal_routes):
        terminal_routes["GET /api/firmware/list"] = {"files": [{"name": "main.bin", "size": 10}]}
        with TestClient(create_app(context)) as client:
            data = client.get("/api/terminals/192.168.1.100/firmware").json()
        assert data["files"][0]["name"] == "main.bin"

    def test_firmware_download(self, context, terminal_routes):
        terminal_routes["GET /api/firmware/download"] = httpx.Response(
            200, content=b"\x01\x02", headers={"content-type": "application/octet-stream"}
        )
        with TestClient(create_app(context)) as client:
            response = client.get(
                "/api/terminals/192.168.1.100/firmware/download", params={"file": "main.bin"}
            )
        assert response.status_code == 200
        assert response.content == b"\x01\x02"
        assert 'filename="main.bin"' in response.headers["content-disposition"]

    def test_firmware_download_note(self, context, terminal_routes):
        terminal_routes["GET /api/firmware/download"] = {
            "error": "Not stored",
            "note": "Source is in the repository",
        }
        with TestClient(create_app(context)) as client:
            response = client.get(
                "/api/terminals/192.168.1.100/firmware/download", params={"file": "main.ino"}
            )
        assert response.status_code == 502
        assert response.json()["detail"] == {"message": "Source is in the repository", "level": "info"}

    def test_unreachable_terminal(self, context, terminal_routes):
        terminal_routes["GET /api/status"] = httpx.ConnectError("no route")
        with TestClient(create_app(context)) as client:
            response = client.get("/api/terminals/192.168.1.100/status")
        assert response.status_code == 502
        assert response.json()["detail"]["message"] == "Failed to fetch device status"

    def test_invalid_address(self, context, terminal_routes):
        with TestClient(create_app(context)) as client:
            response = client.get("/api/terminals/not-an-ip/status")
        assert response.status_code == 400

    def test_simple_action(self, context, terminal_routes):
        terminal_routes["POST /api/actions/restart"] = {"success": True}
        with TestClient(create_app(context)) as client:
            response = client.post("/api/terminals/192.168.1.100/actions/restart")
        assert response.json() == {"success": True, "message": "Action restart completed"}

    def test_switch_network(self, context, terminal_routes):
        terminal_routes["POST /api/actions/switch-network"] = {"success": True}
        with TestClient(create_app(context)) as client:
            response = client.post(
                "/api/terminals/192.168.1.100/actions/switch-network",
                json={"ssid": "office", "password": "secret"},
            )
        assert response.json()["message"] == "Network switch initiated"

    def test_switch_network_without_ssid(self, context, terminal_routes):
        with TestClient(create_app(context)) as client:
            response = client.post(
                "/api/terminals/192.168.1.100/actions/switch-network", json={"ssid": ""}
            )
        assert response.status_code == 502
        assert "SSID" in response.json()["detail"]["message"]

    def test_unknown_action(self, context, terminal_routes):
        with TestClient(create_app(context)) as client:
            response = client.post("/api/terminals/192.168.1.100/actions/format")
        assert response.status_code == 400

    def test_select_terminal(self, context, terminal_routes):
        terminal_routes["GET /api/status"] = {"systemInitialized": True, "uptime": 5000, "freeHeap": 1}
        terminal_routes["GET /api/logs"] = {"offlineCount": 0}
        with TestClient(create_app(context)) as client:
            selected = client.post("/api/terminals/192.168.1.100/select").json()
            current = client.get("/api/terminals/selected").json()

        assert selected["address"] == "192.168.1.100"
        assert selected["status"]["uptime_ms"] == 5000
        assert current["address"] == "192.168.1.100"

    def test_select_generic_device_refused(self, context, terminal_routes):
        with TestClient(create_app(context)) as client:
            client.post("/api/discovery/scan")
            wait_for_scan(client)

            response = client.post("/api/terminals/192.168.1.101/select")

        assert response.status_code == 400
        assert response.json()["detail"] == {
            "message": "Can only connect to Attendee devices",
            "level": "info",
        }
        assert context.monitor.selected is None

    def test_select_recognized_device_after_scan(self, context, terminal_routes):
        terminal_routes["GET /api/status"] = {"systemInitialized": True, "uptime": 5000, "freeHeap": 1}
        terminal_routes["GET /api/logs"] = {"offlineCount": 0}
        with TestClient(create_app(context)) as client:
            client.post("/api/discovery/scan")
            wait_for_scan(client)

            response = client.post("/api/terminals/192.168.1.100/select")

        assert response.status_code == 200
        assert context.monitor.selected == "192.168.1.100"

    def test_sync_refreshes_monitored_logs(self, context, terminal_routes):
        terminal_routes["GET /api/status"] = {"systemInitialized": True, "uptime": 5000, "freeHeap": 1}
        terminal_routes["GET /api/logs"] = {"offlineCount": 7}
        terminal_routes["POST /api/actions/sync"] = {"success": True, "message": "Synced 7 records"}
        with TestClient(create_app(context)) as client:
            client.post("/api/terminals/192.168.1.100/select")
            terminal_routes["GET /api/logs"] = {"offlineCount": 0}

            response = client.post("/api/terminals/192.168.1.100/actions/sync")
            current = client.get("/api/terminals/selected").json()

        assert response.json() == {"success": True, "message": "Synced 7 records"}
        assert current["logs"]["offline_count"] == 0

    def test_switch_network_refreshes_monitored_status(self, context, terminal_routes, monkeypatch):
        monkeypatch.setattr("attendee_discovery.web.routes.NETWORK_SWITCH_SETTLE_TIME", 0.01)
        terminal_routes["GET /api/status"] = {
            "systemInitialized": True,
            "uptime": 5000,
            "freeHeap": 1,
            "network": {"wifiConnected": True, "ssid": "office"},
        }
        terminal_routes["GET /api/logs"] = {"offlineCount": 0}
        terminal_routes["POST /api/actions/switch-network"] = {"success": True}
        with TestClient(create_app(context)) as client:
            client.post("/api/terminals/192.168.1.100/select")
            terminal_routes["GET /api/status"] = {
                "systemInitialized": True,
                "uptime": 9000,
                "freeHeap": 1,
                "network": {"wifiConnected": True, "ssid": "warehouse"},
            }

            client.post(
                "/api/terminals/192.168.1.100/actions/switch-network",
                json={"ssid": "warehouse", "password": "pw"},
            )
            deadline = time.monotonic() + 2.0
            current = client.get("/api/terminals/selected").json()
            while current["status"]["ssid"] != "warehouse" and time.monotonic() < deadline:
                time.sleep(0.01)
                current = client.get("/api/terminals/selected").json()

        assert current["status"]["ssid"] == "warehouse"
