"""
Prometheus metrics collection and HTTP exposition.

Module-level metric objects are process-wide singletons shared by the relay
connection and the feed reconciler:

    INBOUND_EVENTS:             Relay events by outcome (accepted/duplicate/dropped).
    PUBLISHED_EVENTS:           Publish attempts by result.
    PUBLISH_DURATION_SECONDS:   Time from sending ``EVENT`` to the relay's ``OK``.
    FEED_SIZE:                  Number of posts currently in the feed.
    RELAY_STATE:                Current connection state (one-hot by label).

``MetricsServer`` provides an optional aiohttp endpoint for scraping.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True.
    """

    enabled: bool = Field(default=False, description="Enable the metrics endpoint")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Client Metrics
# ---------------------------------------------------------------------------

INBOUND_EVENTS = Counter(
    "paleoquota_inbound_events",
    "Events received from the relay, by reconciliation outcome",
    ["outcome"],
)

PUBLISHED_EVENTS = Counter(
    "paleoquota_published_events",
    "Events published to the relay, by result",
    ["result"],
)

PUBLISH_DURATION_SECONDS = Histogram(
    "paleoquota_publish_duration_seconds",
    "Seconds between sending an event and receiving the relay acknowledgment",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)

FEED_SIZE = Gauge(
    "paleoquota_feed_size",
    "Number of posts currently held in the in-memory feed",
)

RELAY_STATE = Gauge(
    "paleoquota_relay_state",
    "Relay connection state (1 for the current state, 0 otherwise)",
    ["state"],
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... client runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Start listening for scrape requests (no-op when disabled).

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        try:
            site = web.TCPSite(runner, self._config.host, self._config.port)
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner

    async def stop(self) -> None:
        """Stop the HTTP server. Idempotent."""
        if self._runner is not None:
            runner, self._runner = self._runner, None
            await runner.cleanup()

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )
