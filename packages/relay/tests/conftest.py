"""
Shared fixtures for relay tests.
"""

import asyncio
import random

import pytest
from fastapi.testclient import TestClient

from gumboard_relay.app import create_app
from gumboard_relay.config import AuthConfig, MetricsConfig, RelayConfig, ServerConfig
from gumboard_relay.metrics import MetricsCollector
from gumboard_relay.rooms import RoomRegistry

TEST_SECRET = "test-relay-secret"
SECRET_ENV = "TEST_RELAY_SHARED_SECRET"


def _pick_port():
    return random.randint(19000, 19999)


class FakeWebSocket:
    """Records frames sent to it; can be told to fail or hang."""

    def __init__(self, fail: bool = False, hang: bool = False):
        self.sent: list[str] = []
        self.closed_with: int | None = None
        self._fail = fail
        self._hang = hang

    async def send_text(self, text: str) -> None:
        if self._fail:
            raise RuntimeError("socket closed")
        if self._hang:
            await asyncio.sleep(3600)
        self.sent.append(text)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code


@pytest.fixture
def relay_config(monkeypatch):
    monkeypatch.setenv(SECRET_ENV, TEST_SECRET)
    return RelayConfig(
        server=ServerConfig(send_timeout_seconds=0.5),
        auth=AuthConfig(secret_env=SECRET_ENV),
    )


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def rooms(metrics):
    return RoomRegistry(send_timeout=0.2, metrics=metrics)


@pytest.fixture
def relay_app(relay_config, rooms, metrics):
    return create_app(relay_config, rooms=rooms, metrics=metrics)


@pytest.fixture
def client(relay_app):
    # Context manager keeps one event loop for every request and socket
    with TestClient(relay_app) as c:
        yield c


@pytest.fixture
def emit_headers():
    return {"x-relay-secret": TEST_SECRET}


@pytest.fixture
def live_relay_config(monkeypatch):
    monkeypatch.setenv(SECRET_ENV, TEST_SECRET)
    return RelayConfig(
        server=ServerConfig(host="127.0.0.1", port=_pick_port()),
        auth=AuthConfig(secret_env=SECRET_ENV),
        metrics=MetricsConfig(host="127.0.0.1", port=_pick_port()),
    )


@pytest.fixture
def make_ws():
    return FakeWebSocket


@pytest.fixture
def relay_secret():
    return TEST_SECRET
