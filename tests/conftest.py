"""Shared pytest configuration and fixtures for the relay test suite."""

import json
import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from film_relay.config import Settings
from film_relay.core.connection_state import ConnectionState
from film_relay.core.registry import ConnectionRegistry
from film_relay.core.signaling_router import SignalingRouter
from film_relay.core.store import InMemoryStateStore


class FakeWebSocket:
    """Stands in for a Starlette WebSocket on the sending side."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send_text(self, text: str):
        if self.fail:
            raise RuntimeError("transport closed")
        self.sent.append(json.loads(text))


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        camera_slots=3,
        instance_id="relay-test:8080",
        public_address="192.168.1.20",
        public_port=8080,
        bootstrap_attempts=2,
        bootstrap_retry_delay=0.0,
    )


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def router(store, registry, settings) -> SignalingRouter:
    return SignalingRouter(store, registry, settings)


@pytest.fixture
def make_connection():
    """Factory for started connections backed by a FakeWebSocket.

    Must be called from inside a running event loop.
    """
    def _make(fail: bool = False) -> ConnectionState:
        conn = ConnectionState(FakeWebSocket(fail=fail), outbox_size=16, send_timeout=1.0)
        conn.start()
        return conn
    return _make


@pytest.fixture
def received():
    """Return everything written to a connection so far."""
    async def _received(conn: ConnectionState) -> list:
        await conn.flush()
        return conn.ws.sent
    return _received


@pytest.fixture
def send():
    """Feed one JSON message to the router on behalf of ``conn``."""
    async def _send(router: SignalingRouter, conn: ConnectionState, **message):
        await router.handle_message(conn, json.dumps(message))
    return _send
