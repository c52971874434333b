"""
Async PostgreSQL connection pool built on asyncpg.

Backs the durable post cache
([PostgresFeedStore][paleoquota.feed.store.PostgresFeedStore]). Connection
creation retries with exponential or linear backoff, and queries retry on
transient connection-level errors (``InterfaceError``,
``ConnectionDoesNotExistError``) but never on query-level errors.

Examples:
    ```python
    pool = Pool(PoolConfig())

    async with pool:
        rows = await pool.fetch("SELECT id, content, pubkey FROM post")
    ```
"""

from __future__ import annotations

import asyncio
import os
from contextlib import AbstractAsyncContextManager
from typing import Any, Literal, cast

import asyncpg
from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator, model_validator

from .logger import Logger


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class DatabaseConfig(BaseModel):
    """PostgreSQL connection parameters.

    The password is loaded from the environment variable named by
    ``password_env``. It is never read from configuration files.
    """

    host: str = Field(default="localhost", min_length=1, description="Database hostname")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    database: str = Field(default="paleoquota", min_length=1, description="Database name")
    user: str = Field(default="paleoquota", min_length=1, description="Database user")
    password_env: str = Field(
        default="DB_PASSWORD",  # pragma: allowlist secret
        min_length=1,
        description="Environment variable name for database password",
    )
    password: SecretStr = Field(description="Database password (loaded from password_env)")

    @model_validator(mode="before")
    @classmethod
    def resolve_password(cls, data: Any) -> Any:
        """Resolve the database password from the environment variable."""
        if isinstance(data, dict) and data.get("password") is None:
            env_var = data.get("password_env", "DB_PASSWORD")  # pragma: allowlist secret
            value = os.getenv(env_var)
            if not value:
                raise ValueError(f"{env_var} environment variable not set")
            data = {**data, "password": SecretStr(value)}
        return data


class PoolLimitsConfig(BaseModel):
    """Connection pool size limits. A single client needs very few connections."""

    min_size: int = Field(default=1, ge=1, le=20, description="Minimum connections")
    max_size: int = Field(default=2, ge=1, le=20, description="Maximum connections")

    @field_validator("max_size")
    @classmethod
    def validate_max_size(cls, v: int, info: ValidationInfo) -> int:
        """Ensure max_size >= min_size."""
        min_size = info.data.get("min_size", 1)
        if v < min_size:
            raise ValueError(f"max_size ({v}) must be >= min_size ({min_size})")
        return v


class PoolRetryConfig(BaseModel):
    """Retry strategy for failed connection attempts.

    Exponential backoff doubles the delay each attempt
    (``initial_delay * 2^attempt``), linear backoff grows it by
    ``initial_delay`` per attempt. Both are capped at ``max_delay``.
    """

    max_attempts: int = Field(default=3, ge=1, le=10, description="Max retry attempts")
    initial_delay: float = Field(default=0.5, ge=0.0, description="Initial retry delay")
    max_delay: float = Field(default=5.0, ge=0.0, description="Maximum retry delay")
    exponential_backoff: bool = Field(default=True, description="Use exponential backoff")

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info: ValidationInfo) -> float:
        """Ensure max_delay >= initial_delay."""
        initial_delay = info.data.get("initial_delay", 0.5)
        if v < initial_delay:
            raise ValueError(f"max_delay ({v}) must be >= initial_delay ({initial_delay})")
        return v


class PoolConfig(BaseModel):
    """Aggregate configuration for the connection pool."""

    database: DatabaseConfig = Field(default_factory=lambda: DatabaseConfig.model_validate({}))
    limits: PoolLimitsConfig = Field(default_factory=PoolLimitsConfig)
    retry: PoolRetryConfig = Field(default_factory=PoolRetryConfig)
    acquisition_timeout: float = Field(
        default=10.0, ge=0.1, description="Connection acquisition timeout (seconds)"
    )
    application_name: str = Field(default="paleoquota", description="Application name")


# ---------------------------------------------------------------------------
# Pool Class
# ---------------------------------------------------------------------------


class Pool:
    """Async PostgreSQL connection pool manager.

    Wraps ``asyncpg.Pool`` with retry logic and an async context manager.
    Created disconnected; call [connect()][paleoquota.core.pool.Pool.connect]
    or use ``async with``.
    """

    def __init__(self, config: PoolConfig | None = None) -> None:
        self._config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None
        self._is_connected: bool = False
        self._connection_lock = asyncio.Lock()
        self._logger = Logger("pool")

    def _retry_delay(self, attempt: int) -> float:
        retry = self._config.retry
        if retry.exponential_backoff:
            delay = retry.initial_delay * (2**attempt)
        else:
            delay = retry.initial_delay * (attempt + 1)
        return float(min(delay, retry.max_delay))

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Create the asyncpg pool, retrying with backoff on failure.

        Raises:
            ConnectionError: If all retry attempts are exhausted.
        """
        async with self._connection_lock:
            if self._is_connected:
                return

            db = self._config.database
            self._logger.info(
                "connection_starting", host=db.host, port=db.port, database=db.database
            )

            for attempt in range(self._config.retry.max_attempts):
                try:
                    self._pool = await asyncpg.create_pool(
                        host=db.host,
                        port=db.port,
                        database=db.database,
                        user=db.user,
                        password=db.password.get_secret_value(),
                        min_size=self._config.limits.min_size,
                        max_size=self._config.limits.max_size,
                        timeout=self._config.acquisition_timeout,
                        server_settings={"application_name": self._config.application_name},
                    )
                    self._is_connected = True
                    self._logger.info("connection_established")
                    return

                except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
                    if attempt + 1 >= self._config.retry.max_attempts:
                        self._logger.error("connection_failed", attempts=attempt + 1, error=str(e))
                        raise ConnectionError(
                            f"Failed to connect after {attempt + 1} attempts: {e}"
                        ) from e
                    delay = self._retry_delay(attempt)
                    self._logger.warning(
                        "connection_retry", attempt=attempt + 1, delay=delay, error=str(e)
                    )
                    await asyncio.sleep(delay)

    async def close(self) -> None:
        """Close the pool and release all connections. Idempotent."""
        async with self._connection_lock:
            if self._pool is not None:
                try:
                    await self._pool.close()
                    self._logger.info("connection_closed")
                finally:
                    self._pool = None
                    self._is_connected = False

    def acquire(self) -> AbstractAsyncContextManager[asyncpg.Connection]:
        """Acquire a connection from the pool.

        Raises:
            RuntimeError: If the pool has not been connected yet.
        """
        if not self._is_connected or self._pool is None:
            raise RuntimeError("Pool not connected. Call connect() first.")
        return cast("AbstractAsyncContextManager[asyncpg.Connection]", self._pool.acquire())

    # -------------------------------------------------------------------------
    # Query Methods (with retry for transient connection errors)
    # -------------------------------------------------------------------------

    async def _execute_with_retry(
        self,
        operation: Literal["fetch", "execute"],
        query: str,
        args: tuple[Any, ...],
        timeout: float | None,  # noqa: ASYNC109
    ) -> Any:
        max_attempts = self._config.retry.max_attempts

        for attempt in range(max_attempts):
            try:
                async with self.acquire() as conn:
                    method = getattr(conn, operation)
                    return await method(query, *args, timeout=timeout)
            except (asyncpg.InterfaceError, asyncpg.ConnectionDoesNotExistError) as e:
                if attempt < max_attempts - 1:
                    delay = self._retry_delay(attempt)
                    self._logger.warning(
                        "query_retry",
                        operation=operation,
                        attempt=attempt + 1,
                        delay_s=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)
                    continue
                self._logger.error(
                    "query_failed", operation=operation, attempts=max_attempts, error=str(e)
                )
                raise ConnectionError(
                    f"{operation} failed after {max_attempts} attempts: {e}"
                ) from e

        raise RuntimeError("Unexpected state in _execute_with_retry")

    async def fetch(
        self,
        query: str,
        *args: Any,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[asyncpg.Record]:
        """Execute a query and return all matching rows."""
        result = await self._execute_with_retry("fetch", query, args, timeout)
        return cast("list[asyncpg.Record]", result)

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:  # noqa: ASYNC109
        """Execute a query and return the command status tag (e.g. ``"INSERT 0 1"``)."""
        result = await self._execute_with_retry("execute", query, args, timeout)
        return cast("str", result)

    # -------------------------------------------------------------------------
    # Properties and Context Manager
    # -------------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def config(self) -> PoolConfig:
        return self._config

    async def __aenter__(self) -> Pool:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        db = self._config.database
        return f"Pool(host={db.host}, database={db.database}, connected={self._is_connected})"
