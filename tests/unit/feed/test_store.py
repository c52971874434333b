"""
Unit tests for feed.store module.

Tests:
- MemoryFeedStore row ids and newest-first load
- PostgresFeedStore open/load/append against a mocked Pool
- Error mapping to StoreUnavailableError / StoreError
- create_store() backend selection
"""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from paleoquota.core.exceptions import StoreError, StoreUnavailableError
from paleoquota.core.pool import DatabaseConfig, Pool, PoolConfig
from paleoquota.feed.configs import StoreConfig
from paleoquota.feed.store import (
    FeedStore,
    MemoryFeedStore,
    PostgresFeedStore,
    create_store,
)
from paleoquota.models import Post


ALICE = "a" * 64
BOB = "b" * 64


# =============================================================================
# MemoryFeedStore
# =============================================================================


class TestMemoryFeedStore:
    """Process-local store."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(MemoryFeedStore(), FeedStore)

    @pytest.mark.asyncio
    async def test_empty(self) -> None:
        store = MemoryFeedStore()
        await store.open()
        assert await store.load() == []
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_newest_first_with_row_ids(self) -> None:
        store = MemoryFeedStore()
        await store.append(Post("first", ALICE))
        await store.append(Post("second", BOB))

        loaded = await store.load()
        assert [p.content for p in loaded] == ["second", "first"]
        assert [p.row_id for p in loaded] == [2, 1]

    @pytest.mark.asyncio
    async def test_accepts_duplicates(self) -> None:
        store = MemoryFeedStore([Post("gm", ALICE)])
        await store.append(Post("gm", ALICE))
        assert len(store) == 2

    @pytest.mark.asyncio
    async def test_seeded_rows_get_fresh_ids(self) -> None:
        store = MemoryFeedStore([Post("gm", ALICE, row_id=40)])
        assert (await store.load())[0].row_id == 1


# =============================================================================
# PostgresFeedStore
# =============================================================================


class TestPostgresFeedStoreOpen:
    """open() connects and creates the table."""

    @pytest.mark.asyncio
    async def test_creates_table(self, mock_pool: Pool) -> None:
        store = PostgresFeedStore(mock_pool)
        await store.open()

        query = mock_pool._mock_connection.execute.call_args[0][0]  # type: ignore[attr-defined]
        assert "CREATE TABLE IF NOT EXISTS post" in query
        assert store.pool is mock_pool

    @pytest.mark.asyncio
    async def test_unreachable_database(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PASSWORD", "test_password")
        pool = Pool(
            PoolConfig(
                database=DatabaseConfig(),
                retry={"max_attempts": 2, "initial_delay": 0.0, "max_delay": 0.0},
            )
        )
        store = PostgresFeedStore(pool)

        with (
            patch("asyncpg.create_pool", new_callable=AsyncMock, side_effect=OSError("refused")),
            pytest.raises(StoreUnavailableError, match="unavailable"),
        ):
            await store.open()

    @pytest.mark.asyncio
    async def test_bad_client_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PASSWORD", "test_password")
        store = PostgresFeedStore(Pool(PoolConfig(retry={"max_attempts": 1})))
        bad_settings = asyncpg.exceptions.ClientConfigurationError("invalid sslmode")

        with (
            patch("asyncpg.create_pool", new_callable=AsyncMock, side_effect=bad_settings),
            pytest.raises(StoreUnavailableError, match="sslmode"),
        ):
            await store.open()

    @pytest.mark.asyncio
    async def test_close(self, mock_pool: Pool) -> None:
        inner = mock_pool._pool
        store = PostgresFeedStore(mock_pool)
        await store.close()

        inner.close.assert_awaited_once()  # type: ignore[union-attr]
        assert mock_pool.is_connected is False


class TestPostgresFeedStoreLoad:
    """load() maps rows to posts."""

    @pytest.mark.asyncio
    async def test_maps_rows(self, mock_pool: Pool) -> None:
        conn: MagicMock = mock_pool._mock_connection  # type: ignore[attr-defined]
        conn.fetch.return_value = [
            {"id": 2, "content": "second", "pubkey": BOB},
            {"id": 1, "content": "first", "pubkey": ALICE},
        ]

        posts = await PostgresFeedStore(mock_pool).load()

        assert posts == [Post("second", BOB), Post("first", ALICE)]
        assert [p.row_id for p in posts] == [2, 1]
        assert "ORDER BY id DESC" in conn.fetch.call_args[0][0]

    @pytest.mark.asyncio
    async def test_skips_invalid_rows(self, mock_pool: Pool) -> None:
        conn: MagicMock = mock_pool._mock_connection  # type: ignore[attr-defined]
        conn.fetch.return_value = [
            {"id": 3, "content": "   ", "pubkey": ALICE},
            {"id": 2, "content": "ok", "pubkey": "not-a-key"},
            {"id": 1, "content": "gm", "pubkey": ALICE},
        ]

        posts = await PostgresFeedStore(mock_pool).load()
        assert posts == [Post("gm", ALICE)]

    @pytest.mark.asyncio
    async def test_query_error(self, mock_pool: Pool) -> None:
        conn: MagicMock = mock_pool._mock_connection  # type: ignore[attr-defined]
        conn.fetch.side_effect = asyncpg.PostgresError("relation does not exist")

        with pytest.raises(StoreUnavailableError):
            await PostgresFeedStore(mock_pool).load()

    @pytest.mark.asyncio
    async def test_not_connected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PASSWORD", "test_password")
        with pytest.raises(StoreUnavailableError):
            await PostgresFeedStore(Pool()).load()


class TestPostgresFeedStoreAppend:
    """append() inserts one row."""

    @pytest.mark.asyncio
    async def test_insert(self, mock_pool: Pool) -> None:
        conn: MagicMock = mock_pool._mock_connection  # type: ignore[attr-defined]
        await PostgresFeedStore(mock_pool).append(Post("gm", ALICE))

        args = conn.execute.call_args[0]
        assert args[0].startswith("INSERT INTO post (content, pubkey)")
        assert args[1:] == ("gm", ALICE)

    @pytest.mark.asyncio
    async def test_connection_lost(self, mock_pool: Pool) -> None:
        conn: MagicMock = mock_pool._mock_connection  # type: ignore[attr-defined]
        conn.execute.side_effect = asyncpg.InterfaceError("gone")

        with pytest.raises(StoreError, match="failed to cache post"):
            await PostgresFeedStore(mock_pool).append(Post("gm", ALICE))
        assert conn.execute.await_count == 2


# =============================================================================
# create_store()
# =============================================================================


class TestCreateStore:
    """Backend selection."""

    def test_memory(self) -> None:
        assert isinstance(create_store(StoreConfig()), MemoryFeedStore)

    def test_postgres(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PASSWORD", "test_password")
        store = create_store(StoreConfig(backend="postgres"))

        assert isinstance(store, PostgresFeedStore)
        assert store.pool.is_connected is False
        assert isinstance(store, FeedStore)
