"""Core layer: exceptions, structured logging, YAML loading, metrics, and the
PostgreSQL pool.

Depends only on third-party libraries and is used by every other layer.

Attributes:
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][paleoquota.core.logger.Logger].
    Pool: Async PostgreSQL connection pool with retry/backoff.
        See [Pool][paleoquota.core.pool.Pool].
    MetricsServer: Prometheus endpoint.
        See [MetricsServer][paleoquota.core.metrics.MetricsServer].
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .exceptions import (
    ConfigurationError,
    ConnectionClosedError,
    ConnectivityError,
    EncodingError,
    PaleoQuotaError,
    ProtocolError,
    PublishingError,
    RelayConnectionError,
    RelayTimeoutError,
    StoreError,
    StoreUnavailableError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import MetricsConfig, MetricsServer
from .pool import DatabaseConfig, Pool, PoolConfig, PoolLimitsConfig, PoolRetryConfig
from .yaml import load_yaml


__all__ = [
    "ConfigurationError",
    "ConnectionClosedError",
    "ConnectivityError",
    "DatabaseConfig",
    "EncodingError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "PaleoQuotaError",
    "Pool",
    "PoolConfig",
    "PoolLimitsConfig",
    "PoolRetryConfig",
    "ProtocolError",
    "PublishingError",
    "RelayConnectionError",
    "RelayTimeoutError",
    "StoreError",
    "StoreUnavailableError",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
]
