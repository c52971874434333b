"""Configuration models for the feed client.

[ClientConfig][paleoquota.feed.configs.ClientConfig] aggregates every
setting the client reads: the relay endpoint, identity persistence, the
post cache backend, inbound signature verification and the Prometheus
endpoint. Each section has defaults, so an empty YAML file is a valid
configuration (in-memory cache, fresh identity per post, default relay).

Examples:
    ```yaml
    relay:
      url: wss://relay.damus.io
      publish_timeout: 15
      backfill_limit: 200
    identity:
      persist_identity: true
      keys_env: PALEOQUOTA_NSEC
    store:
      backend: postgres
      pool:
        database:
          host: localhost
    verify_signatures: true
    ```

See Also:
    [load_yaml()][paleoquota.core.yaml.load_yaml]: Safe YAML parsing used by
        [from_yaml()][paleoquota.feed.configs.ClientConfig.from_yaml].
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from paleoquota.core.exceptions import ConfigurationError
from paleoquota.core.metrics import MetricsConfig
from paleoquota.core.pool import PoolConfig
from paleoquota.core.yaml import load_yaml
from paleoquota.nostr.identity import IdentityConfig
from paleoquota.nostr.relay import RelayConfig


class StoreConfig(BaseModel):
    """Post cache backend selection.

    The ``postgres`` backend builds a [PoolConfig][paleoquota.core.pool.PoolConfig]
    (which reads the database password from the environment). The ``memory``
    backend never touches the pool settings, so no database password is
    needed to run without one.
    """

    backend: Literal["memory", "postgres"] = Field(
        default="memory", description="Post cache backend"
    )
    pool: PoolConfig | None = Field(default=None, description="asyncpg pool settings")

    @model_validator(mode="before")
    @classmethod
    def _default_pool_for_postgres(cls, data: Any) -> Any:
        if (
            isinstance(data, dict)
            and data.get("backend") == "postgres"
            and data.get("pool") is None
        ):
            data = {**data, "pool": {}}
        return data


class ClientConfig(BaseModel):
    """Top-level client configuration."""

    relay: RelayConfig = Field(default_factory=RelayConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    verify_signatures: bool = Field(
        default=True, description="Drop inbound events whose signature does not verify"
    )
    max_feed_size: int | None = Field(
        default=5000,
        ge=1,
        description="Posts kept in the in-memory feed; oldest are evicted first (None: unbounded)",
    )
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> ClientConfig:
        """Load a configuration from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the YAML is malformed or fails validation.
        """
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        """Validate a pre-parsed configuration mapping.

        Raises:
            ConfigurationError: If validation fails.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
