"""Shared fixtures for the esp_relay test suite."""

from __future__ import annotations

import asyncio

import pytest

from esp_relay import config as config_module
from esp_relay.relay_server import RelayServer
from esp_relay.router import MessageRouter
from esp_relay.session import Session


class FakeWebSocket:
    """Records every frame sent to it."""

    def __init__(self) -> None:
        self.sent: list[str] = []

    async def send(self, text: str) -> None:
        self.sent.append(text)


def take_queued(session: Session) -> list[str]:
    """Pop everything waiting in a session's outbox."""
    frames = []
    while True:
        try:
            frames.append(session.outbox.get_nowait())
        except asyncio.QueueEmpty:
            return frames


@pytest.fixture
def router() -> MessageRouter:
    return MessageRouter()


@pytest.fixture(autouse=True)
def reset_config_singleton():
    config_module._config = None
    yield
    config_module._config = None


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's RELAY_* variables and .env out of tests."""
    for var in config_module.ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_FILE", tmp_path / "missing.yaml")


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
async def live_relay():
    """A relay listening on an ephemeral localhost port."""
    server = RelayServer(host="127.0.0.1", port=0)
    await server.start()
    yield server
    await server.stop()
