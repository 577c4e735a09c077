"""
Shared pytest fixtures for the broker test suite.
"""

import base64
import os
import secrets
import struct
from unittest.mock import MagicMock

import pytest

# ---------------------------------------------------------------------------
# Environment stubs – must be set BEFORE any broker module is imported so
# that module-level configuration lookups see test values.
# ---------------------------------------------------------------------------

os.environ.setdefault("BROKER_API_KEY", "test-api-key-secret")
os.environ.setdefault("CONFIG_PATH", "/tmp/ssh-broker-tests/config")

# Import broker modules AFTER env vars are set
from ssh_broker.domain.auth import PublicKey  # noqa: E402
from ssh_broker.domain.broker import SessionBroker  # noqa: E402
from ssh_broker.domain.types import RemovalResult  # noqa: E402

GRACE_PERIOD = 3600.0


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Public keys
# ---------------------------------------------------------------------------

@pytest.fixture
def make_key():
    """Factory for random SSH public keys in wire format."""
    def _make(algorithm: str = "ssh-ed25519") -> PublicKey:
        name = algorithm.encode()
        body = secrets.token_bytes(32)
        blob = struct.pack(">I", len(name)) + name + struct.pack(">I", len(body)) + body
        return PublicKey.from_blob(blob)
    return _make


@pytest.fixture
def authorized_line():
    """Render a key as an authorized_keys line."""
    def _line(key: PublicKey, comment: str = "user@host") -> str:
        return f"{key.algorithm} {base64.b64encode(key.blob).decode()} {comment}"
    return _line


@pytest.fixture
def alice_key(make_key):
    return make_key()


@pytest.fixture
def bob_key(make_key):
    return make_key("ssh-rsa")


# ---------------------------------------------------------------------------
# Container engine mock
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_engine():
    """Container engine whose removals succeed by default."""
    engine = MagicMock()
    engine.remove.return_value = RemovalResult.REMOVED
    engine.list_managed.return_value = []
    engine.ping.return_value = True
    return engine


# ---------------------------------------------------------------------------
# Broker
# ---------------------------------------------------------------------------

@pytest.fixture
def broker(mock_engine, clock, alice_key, bob_key):
    """Broker for alice and bob with a one hour grace period."""
    return SessionBroker(
        engine=mock_engine,
        authorized_keys={"alice": [alice_key], "bob": [bob_key]},
        grace_period=GRACE_PERIOD,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Service container mock
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_services(mocker, broker, mock_engine):
    """ServiceContainer pre-filled with the test broker and engine."""
    from ssh_broker.container import ServiceContainer
    from ssh_broker.services.expiration_sweeper import ExpirationSweeper

    container = ServiceContainer()
    container._engine = mock_engine
    container._broker = broker
    container._sweeper = ExpirationSweeper(broker, interval=30)
    container._ssh_server = MagicMock()

    mocker.patch("ssh_broker.container._global_container", container)
    return container


# ---------------------------------------------------------------------------
# Flask test client
# ---------------------------------------------------------------------------

@pytest.fixture
def app_client(mocker, mock_services):
    """Flask test_client with services mocked and the API key pre-set."""
    from ssh_broker.api.rate_limit import limiter
    from ssh_broker.app import app

    app.config["TESTING"] = True
    app.extensions["services"] = mock_services
    # Disable rate limiting for most tests
    mocker.patch.object(limiter, "enabled", False)

    client = app.test_client()
    _original_open = client.open

    def _open_with_key(*args, **kwargs):
        headers = kwargs.pop("headers", {})
        if isinstance(headers, dict) and "X-API-Key" not in headers and "Authorization" not in headers:
            headers["X-API-Key"] = "test-api-key-secret"
        kwargs["headers"] = headers
        return _original_open(*args, **kwargs)

    client.open = _open_with_key
    return client
