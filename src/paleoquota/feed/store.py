"""
Local durable cache of previously seen posts.

The cache is an insert-and-scan-all row store with the logical schema
``post(id auto-increment, content, pubkey)``. Semantic deduplication is the
[FeedReconciler][paleoquota.feed.reconciler.FeedReconciler]'s job, so
stores accept duplicate rows without error.

Two implementations satisfy the [FeedStore][paleoquota.feed.store.FeedStore]
protocol:

- [PostgresFeedStore][paleoquota.feed.store.PostgresFeedStore]: durable,
  backed by the asyncpg [Pool][paleoquota.core.pool.Pool].
- [MemoryFeedStore][paleoquota.feed.store.MemoryFeedStore]: process-local,
  used when no database is configured and in tests.

See Also:
    [StoreConfig][paleoquota.feed.configs.StoreConfig]: Backend selection
        consumed by [create_store()][paleoquota.feed.store.create_store].
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import asyncpg

from paleoquota.core.exceptions import StoreError, StoreUnavailableError
from paleoquota.core.logger import Logger
from paleoquota.core.pool import Pool
from paleoquota.models.post import Post, PostDbParams


if TYPE_CHECKING:
    from .configs import StoreConfig


_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS post (
    id BIGSERIAL PRIMARY KEY,
    content TEXT NOT NULL,
    pubkey TEXT NOT NULL
)
"""

_SELECT_ALL = "SELECT id, content, pubkey FROM post ORDER BY id DESC"

_INSERT = "INSERT INTO post (content, pubkey) VALUES ($1, $2)"

# Failures that mean the database could not be reached or queried.
_POOL_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    ConnectionError,
    OSError,
    RuntimeError,
    TimeoutError,
)


@runtime_checkable
class FeedStore(Protocol):
    """Insert-and-scan-all post cache."""

    async def open(self) -> None:
        """Prepare the backing store.

        Raises:
            StoreUnavailableError: If the store cannot be opened.
        """
        ...

    async def close(self) -> None:
        """Release the backing store. Idempotent."""
        ...

    async def load(self) -> list[Post]:
        """Return every cached post, newest first when the backend can order.

        Raises:
            StoreUnavailableError: If the store cannot be read.
        """
        ...

    async def append(self, post: Post) -> None:
        """Persist one post. Duplicates are accepted.

        Raises:
            StoreError: If the write fails.
        """
        ...


class PostgresFeedStore:
    """Post cache in the PostgreSQL ``post`` table.

    The store owns its [Pool][paleoquota.core.pool.Pool]: ``open()``
    connects it and creates the table, ``close()`` closes it.
    """

    def __init__(self, pool: Pool) -> None:
        self._pool = pool
        self._logger = Logger("store")

    @property
    def pool(self) -> Pool:
        return self._pool

    async def open(self) -> None:
        try:
            await self._pool.connect()
            await self._pool.execute(_CREATE_TABLE)
        except _POOL_ERRORS as e:
            raise StoreUnavailableError(f"post cache unavailable: {e}") from e
        self._logger.info("store_opened", backend="postgres")

    async def close(self) -> None:
        await self._pool.close()

    async def load(self) -> list[Post]:
        try:
            rows = await self._pool.fetch(_SELECT_ALL)
        except _POOL_ERRORS as e:
            raise StoreUnavailableError(f"post cache unreadable: {e}") from e

        posts: list[Post] = []
        for row in rows:
            try:
                posts.append(
                    Post.from_db_params(
                        PostDbParams(content=row["content"], pubkey=row["pubkey"]),
                        row_id=row["id"],
                    )
                )
            except (TypeError, ValueError) as e:
                self._logger.warning("row_skipped", row_id=row["id"], error=str(e))
        self._logger.debug("store_loaded", count=len(posts))
        return posts

    async def append(self, post: Post) -> None:
        try:
            await self._pool.execute(_INSERT, *post.to_db_params())
        except _POOL_ERRORS as e:
            raise StoreError(f"failed to cache post: {e}") from e


class MemoryFeedStore:
    """Process-local post cache with incrementing row ids."""

    def __init__(self, posts: list[Post] | None = None) -> None:
        self._rows: list[Post] = []
        for post in posts or []:
            self._insert(post)

    def _insert(self, post: Post) -> None:
        self._rows.append(Post.from_db_params(post.to_db_params(), row_id=len(self._rows) + 1))

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def load(self) -> list[Post]:
        return list(reversed(self._rows))

    async def append(self, post: Post) -> None:
        self._insert(post)

    def __len__(self) -> int:
        return len(self._rows)


def create_store(config: StoreConfig) -> FeedStore:
    """Build the store selected by *config*."""
    if config.backend == "postgres":
        return PostgresFeedStore(Pool(config.pool))
    return MemoryFeedStore()
