"""Tests for the HTTP control page and status API."""

from __future__ import annotations

import asyncio
import time

import pytest
from aiohttp import test_utils

from esp_relay import api as api_module
from esp_relay.api import RelayAPI
from esp_relay.relay_server import RelayServer
from esp_relay.ui import PAGE_TITLE, render_control_page

from .conftest import FakeWebSocket, take_queued


@pytest.fixture
def relay() -> RelayServer:
    return RelayServer(host="127.0.0.1", port=8081)


@pytest.fixture
async def client(relay):
    relay_api = RelayAPI(relay, public_host="192.168.1.20")
    async with test_utils.TestClient(test_utils.TestServer(relay_api.app)) as c:
        yield c


class TestControlPage:

    def test_render_inserts_address(self):
        page = render_control_page("ws://10.0.0.5:8081")
        assert 'value="ws://10.0.0.5:8081"' in page
        assert 'new WebSocket("ws://10.0.0.5:8081")' in page
        assert "sendCommand('start')" in page
        assert "sendCommand('stop')" in page
        assert f"<title>{PAGE_TITLE}</title>" in page

    async def test_index_serves_page(self, client):
        resp = await client.get("/")
        assert resp.status == 200
        assert resp.content_type == "text/html"
        body = await resp.text()
        assert "ws://192.168.1.20:8081" in body

    def test_render_escapes_address(self):
        page = render_control_page('ws://evil"><script>x()</script>:8081')
        assert "<script>x()" not in page
        assert 'value="ws://evil&quot;&gt;&lt;script&gt;' in page
        assert 'new WebSocket("ws://evil\\">\\u003cscript>x()\\u003c/script>:8081")' in page

    async def test_address_detected_once_at_startup(self, relay, monkeypatch):
        calls = []

        def discover():
            calls.append(1)
            return "10.1.2.3"

        monkeypatch.setattr(api_module, "get_local_ip_address", discover)
        relay_api = RelayAPI(relay)
        async with test_utils.TestClient(test_utils.TestServer(relay_api.app)) as c:
            for _ in range(3):
                body = await (await c.get("/")).text()
                assert "ws://10.1.2.3:8081" in body
            status = await (await c.get("/api/v1/status")).json()

        assert status["ws_url"] == "ws://10.1.2.3:8081"
        assert calls == [1]

    async def test_page_requests_do_not_stall_forwarding(self, relay, monkeypatch):
        def slow_discover():
            time.sleep(0.5)
            return "10.1.2.3"

        monkeypatch.setattr(api_module, "get_local_ip_address", slow_discover)
        device = await relay.router.register(FakeWebSocket())
        ctrl = await relay.router.register(FakeWebSocket())
        await relay.router.route(device.session_id, "ESP32")

        relay_api = RelayAPI(relay)
        async with test_utils.TestClient(test_utils.TestServer(relay_api.app)) as c:
            loop = asyncio.get_running_loop()

            async def forward():
                await asyncio.sleep(0)
                started = loop.time()
                await relay.router.route(ctrl.session_id, "start")
                return loop.time() - started

            async def lag():
                started = loop.time()
                await asyncio.sleep(0.01)
                return loop.time() - started

            resp, forward_time, loop_lag = await asyncio.gather(
                c.get("/"), forward(), lag())

        assert resp.status == 200
        assert forward_time < 0.2
        assert loop_lag < 0.2
        assert take_queued(device) == ["start"]


class TestStatusEndpoints:

    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    async def test_status_reports_device(self, client, relay):
        device = await relay.router.register(FakeWebSocket(), ("10.0.0.9", 4000))
        await relay.router.register(FakeWebSocket(), ("10.0.0.10", 4001))
        await relay.router.route(device.session_id, "ESP32")

        resp = await client.get("/api/v1/status")
        assert resp.status == 200
        data = await resp.json()
        assert data["server"] == "running"
        assert data["ws_url"] == "ws://192.168.1.20:8081"
        assert data["sessions_connected"] == 2
        assert data["device"]["remote_address"] == "10.0.0.9:4000"
        assert data["controllers"][0]["remote_address"] == "10.0.0.10:4001"

    async def test_unknown_route_returns_json_error(self, client):
        resp = await client.get("/api/v1/nope")
        assert resp.status == 404
        data = await resp.json()
        assert data["status"] == 404

    async def test_handler_error_returns_500(self, client, relay, monkeypatch):
        def broken():
            raise RuntimeError("router exploded")

        monkeypatch.setattr(relay, "get_status", broken)
        resp = await client.get("/api/v1/status")
        assert resp.status == 500
        data = await resp.json()
        assert data["error"] == "router exploded"
