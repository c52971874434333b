"""
Pytest configuration and shared fixtures for PaleoQuota tests.

Provides:
- Mock fixtures for asyncpg and the Pool
- Real keypairs and signed events (nostr-sdk does the cryptography)
- A mocked RelayConnection for reconciler tests
"""

import logging
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from paleoquota.core.pool import DatabaseConfig, Pool, PoolConfig
from paleoquota.models.event import Event
from paleoquota.nostr.codec import EventCodec
from paleoquota.nostr.identity import Keypair
from paleoquota.nostr.relay import PublishResult, RelayConnection, SubscriptionHandle


SECRET_KEY_HEX = "0123456789abcdef" * 4
OTHER_SECRET_KEY_HEX = "fedcba9876543210" * 3 + "0123456789abcdef"

# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Database Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_connection() -> MagicMock:
    """Create a mock asyncpg connection."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.execute = AsyncMock(return_value="INSERT 0 1")
    return conn


@pytest.fixture
def mock_asyncpg_pool(mock_connection: MagicMock) -> MagicMock:
    """Create a mock asyncpg pool."""
    pool = MagicMock()
    pool.close = AsyncMock()

    mock_acquire = MagicMock()
    mock_acquire.__aenter__ = AsyncMock(return_value=mock_connection)
    mock_acquire.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = MagicMock(return_value=mock_acquire)

    return pool


@pytest.fixture
def mock_pool(
    mock_asyncpg_pool: MagicMock, mock_connection: MagicMock, monkeypatch: pytest.MonkeyPatch
) -> Pool:
    """Create a connected Pool with mocked internals."""
    monkeypatch.setenv("DB_PASSWORD", "test_password")

    config = PoolConfig(
        database=DatabaseConfig(host="localhost", port=5432, database="test_db", user="test_user"),
        retry={"max_attempts": 2, "initial_delay": 0.0, "max_delay": 0.0},
    )
    pool = Pool(config=config)
    pool._pool = mock_asyncpg_pool
    pool._is_connected = True

    pool._mock_connection = mock_connection  # type: ignore[attr-defined]
    return pool


# ============================================================================
# Nostr Fixtures
# ============================================================================


@pytest.fixture
def keypair() -> Keypair:
    """A fixed keypair so signatures verify against a known public key."""
    return Keypair.parse(SECRET_KEY_HEX)


@pytest.fixture
def other_keypair() -> Keypair:
    return Keypair.parse(OTHER_SECRET_KEY_HEX)


@pytest.fixture
def codec() -> EventCodec:
    return EventCodec()


@pytest.fixture
def make_event(codec: EventCodec, keypair: Keypair) -> Callable[..., Event]:
    """Factory for properly signed text notes."""

    def _make(
        content: str = "gm",
        author: Keypair | None = None,
        created_at: int = 1_700_000_000,
    ) -> Event:
        return codec.sign_event(content, author or keypair, created_at=created_at)

    return _make


@pytest.fixture
def mock_relay() -> MagicMock:
    """A connected RelayConnection double that accepts every publish."""
    relay = MagicMock(spec=RelayConnection)
    relay.url = "wss://relay.test"
    relay.is_connected = True

    async def _subscribe(filters: dict[str, Any], callback: Any) -> SubscriptionHandle:
        return SubscriptionHandle(id="sub1", filters=filters, callback=callback)

    async def _publish(event: Event) -> PublishResult:
        return PublishResult(event_id=event.id, accepted=True, message="")

    relay.connect = AsyncMock()
    relay.close = AsyncMock()
    relay.subscribe = AsyncMock(side_effect=_subscribe)
    relay.unsubscribe = AsyncMock()
    relay.publish = AsyncMock(side_effect=_publish)
    return relay
