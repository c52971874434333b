"""
Single persistent connection to a Nostr relay over an aiohttp WebSocket.

Implements the NIP-01 subset the client needs: one or more ``REQ``
subscriptions with per-subscription callbacks, ``EVENT`` publishing that
waits for the relay's ``OK``, and ``CLOSE``. Inbound ``EOSE``, ``NOTICE``
and ``CLOSED`` frames are handled; anything else is dropped.

State machine (see [ConnectionState][paleoquota.nostr.relay.ConnectionState]):

```text
DISCONNECTED --connect()--> CONNECTING --ok--> CONNECTED --close()--> DISCONNECTED
                               |                  |
                               +--error-----------+--lost link--> FAILED --> DISCONNECTED
```

A background reader task owns the socket's receive side and delivers
events to subscription callbacks in arrival order. When the link drops the
reader moves the connection to ``FAILED``, fails every in-flight publish
with [ConnectionClosedError][paleoquota.core.exceptions.ConnectionClosedError]
and tears the connection down.

Examples:
    ```python
    async with RelayConnection(RelayConfig(url="wss://relay.damus.io")) as relay:
        handle = await relay.subscribe({"kinds": [1]}, on_event)
        result = await relay.publish(event)
        await relay.unsubscribe(handle)
    ```

See Also:
    [EventCodec][paleoquota.nostr.codec.EventCodec]: Produces the signed
        events passed to [publish()][paleoquota.nostr.relay.RelayConnection.publish].
    [FeedReconciler][paleoquota.feed.reconciler.FeedReconciler]: Owns the
        long-lived connection and its single subscription.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import aiohttp
from pydantic import BaseModel, Field, field_validator
from rfc3986 import uri_reference
from rfc3986.exceptions import RFC3986Exception
from rfc3986.validators import Validator

from paleoquota.core.exceptions import (
    ConnectionClosedError,
    ProtocolError,
    PublishingError,
    RelayConnectionError,
    RelayTimeoutError,
)
from paleoquota.core.logger import Logger
from paleoquota.core.metrics import (
    INBOUND_EVENTS,
    PUBLISH_DURATION_SECONDS,
    PUBLISHED_EVENTS,
    RELAY_STATE,
)
from paleoquota.models.constants import ClientMessageType, RelayMessageType
from paleoquota.models.event import Event


DEFAULT_RELAY_URL = "wss://relay.damus.io"

_CLOSE_TIMEOUT = 5.0

EventCallback = Callable[[Event], Awaitable[None] | None]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class RelayConfig(BaseModel):
    """Relay endpoint and timing settings.

    Attributes:
        url: ``ws://`` or ``wss://`` relay URL.
        connect_timeout: Seconds allowed for the WebSocket handshake.
        publish_timeout: Seconds to wait for the relay's ``OK`` after publishing.
        heartbeat: Seconds between WebSocket pings (``None`` disables them).
        backfill_limit: Optional ``limit`` added to the feed subscription
            filter, capping how many stored events the relay replays.
    """

    url: str = Field(default=DEFAULT_RELAY_URL, description="Relay WebSocket URL")
    connect_timeout: float = Field(default=10.0, gt=0, description="Handshake timeout (s)")
    publish_timeout: float = Field(default=10.0, gt=0, description="OK acknowledgment timeout (s)")
    heartbeat: float | None = Field(default=30.0, gt=0, description="Ping interval (s)")
    backfill_limit: int | None = Field(
        default=None, ge=0, description="Max stored events replayed on subscribe"
    )

    @field_validator("url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        try:
            uri = uri_reference(v.strip()).normalize()
            Validator().require_presence_of("scheme", "host").allow_schemes(
                "ws", "wss"
            ).check_validity_of("scheme", "host", "port", "path").validate(uri)
        except RFC3986Exception as e:
            raise ValueError(
                f"invalid relay URL {v!r}: expected ws:// or wss:// with a host"
            ) from e
        return uri.unsplit()


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class ConnectionState(StrEnum):
    """Lifecycle state of a [RelayConnection][paleoquota.nostr.relay.RelayConnection]."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Relay acknowledgment of a published event (the ``OK`` frame)."""

    event_id: str
    accepted: bool
    message: str = ""


@dataclass(slots=True)
class SubscriptionHandle:
    """A live ``REQ`` subscription.

    Attributes:
        id: Subscription id sent in the ``REQ`` frame.
        filters: The NIP-01 filter object.
        eose: Set once the relay has sent all stored events (``EOSE``).
    """

    id: str
    filters: dict[str, Any]
    callback: EventCallback = field(repr=False)
    eose: bool = False


def parse_relay_message(text: str) -> list[Any]:
    """Decode one relay frame into its JSON array.

    Raises:
        ProtocolError: If the frame is not a JSON array starting with a
            message type string.
    """
    try:
        message = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"relay frame is not JSON: {e.msg}") from e
    if not isinstance(message, list) or not message or not isinstance(message[0], str):
        raise ProtocolError("relay frame must be a JSON array starting with a type string")
    return message


def encode_client_message(message: list[Any]) -> str:
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


class RelayConnection:
    """Persistent WebSocket connection to one relay with multiplexed
    subscriptions and acknowledged publishing.

    Not safe for overlapping ``connect()`` calls; the owner serializes them.
    ``close()`` may be called at any time, any number of times, including
    while a publish is waiting for its acknowledgment.
    """

    def __init__(self, config: RelayConfig | None = None) -> None:
        self._config = config or RelayConfig()
        self._logger = Logger("relay")
        self._state = ConnectionState.DISCONNECTED
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._subscriptions: dict[str, SubscriptionHandle] = {}
        self._pending: dict[str, asyncio.Future[PublishResult]] = {}
        self._closing = False
        self._set_state(ConnectionState.DISCONNECTED)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def url(self) -> str:
        return self._config.url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def subscriptions(self) -> tuple[SubscriptionHandle, ...]:
        return tuple(self._subscriptions.values())

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        for s in ConnectionState:
            RELAY_STATE.labels(state=s.value).set(1 if s is state else 0)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the WebSocket and start the reader task.

        No-op when already connected.

        Raises:
            RelayConnectionError: If the relay is unreachable, TLS fails, the
                handshake is rejected, or it does not complete within
                ``connect_timeout``.
        """
        if self._state is ConnectionState.CONNECTED:
            return
        if self._state is not ConnectionState.DISCONNECTED:
            raise RelayConnectionError(f"cannot connect while {self._state}: {self.url}")

        self._set_state(ConnectionState.CONNECTING)
        self._logger.debug("relay_connecting", url=self.url)

        session = aiohttp.ClientSession()
        try:
            async with asyncio.timeout(self._config.connect_timeout):
                ws = await session.ws_connect(self.url, heartbeat=self._config.heartbeat)
        except TimeoutError:
            await session.close()
            self._set_state(ConnectionState.DISCONNECTED)
            self._logger.warning("relay_connect_timeout", url=self.url)
            raise RelayConnectionError(f"Connection timeout: {self.url}") from None
        except (aiohttp.ClientError, OSError) as e:
            await session.close()
            self._set_state(ConnectionState.DISCONNECTED)
            self._logger.warning("relay_connect_failed", url=self.url, error=str(e))
            raise RelayConnectionError(f"Connection failed: {self.url} ({e})") from e
        except asyncio.CancelledError:
            await session.close()
            self._set_state(ConnectionState.DISCONNECTED)
            raise

        self._session = session
        self._ws = ws
        self._set_state(ConnectionState.CONNECTED)
        self._reader = asyncio.create_task(self._read_loop(ws), name=f"relay-reader:{self.url}")
        self._logger.info("relay_connected", url=self.url)

    async def close(self) -> None:
        """Unregister all subscriptions, fail pending publishes, and release
        the socket and HTTP session. Idempotent."""
        if self._state is ConnectionState.DISCONNECTED and self._ws is None:
            return
        self._closing = True
        try:
            await self._teardown("connection closed")
        finally:
            self._closing = False
        self._logger.info("relay_closed", url=self.url)

    async def _teardown(self, reason: str) -> None:
        # Callers set _closing or leave CONNECTED before getting here, so
        # _send() refuses new frames for the rest of the teardown.
        error = ConnectionClosedError(f"{reason}: {self.url}")

        # Callbacks are unregistered before the socket goes away so no event
        # is delivered into a consumer that is shutting down.
        self._subscriptions.clear()
        self._fail_pending(error)

        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        ws, self._ws = self._ws, None
        session, self._session = self._session, None
        # Close errors carry no information once the link is being discarded.
        if ws is not None:
            with contextlib.suppress(aiohttp.ClientError, OSError, RuntimeError):
                await asyncio.wait_for(ws.close(), timeout=_CLOSE_TIMEOUT)
        if session is not None:
            with contextlib.suppress(aiohttp.ClientError, OSError, RuntimeError):
                await asyncio.wait_for(session.close(), timeout=_CLOSE_TIMEOUT)

        # Anything registered while the reader and socket were being awaited.
        self._subscriptions.clear()
        self._fail_pending(error)
        self._set_state(ConnectionState.DISCONNECTED)

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def __aenter__(self) -> RelayConnection:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    async def _send(self, message: list[Any]) -> None:
        ws = self._ws
        if self._closing:
            raise ConnectionClosedError(f"connection closing: {self.url}")
        if ws is None or not self.is_connected or ws.closed:
            raise ConnectionClosedError(f"not connected: {self.url}")
        try:
            await ws.send_str(encode_client_message(message))
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            raise ConnectionClosedError(f"send failed: {self.url} ({e})") from e

    async def subscribe(
        self,
        filters: dict[str, Any],
        callback: EventCallback,
    ) -> SubscriptionHandle:
        """Send a ``REQ`` and register *callback* for its events.

        The callback may be a plain function or a coroutine function. It runs
        on the reader task, once per event, in arrival order, so it must
        return quickly.

        Raises:
            ConnectionClosedError: If the connection is not open.
        """
        handle = SubscriptionHandle(
            id=uuid.uuid4().hex[:16], filters=dict(filters), callback=callback
        )
        self._subscriptions[handle.id] = handle
        try:
            await self._send([ClientMessageType.REQ.value, handle.id, handle.filters])
        except ConnectionClosedError:
            self._subscriptions.pop(handle.id, None)
            raise
        self._logger.info("subscription_opened", subscription=handle.id, filters=handle.filters)
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Stop delivering events to *handle* and send ``CLOSE``. Idempotent."""
        if self._subscriptions.pop(handle.id, None) is None:
            return
        if self.is_connected:
            try:
                await self._send([ClientMessageType.CLOSE.value, handle.id])
            except ConnectionClosedError as e:
                self._logger.debug(
                    "subscription_close_not_sent", subscription=handle.id, error=str(e)
                )
        self._logger.info("subscription_closed", subscription=handle.id)

    async def publish(self, event: Event) -> PublishResult:
        """Send an event and wait for the relay's acknowledgment.

        Returns:
            The accepted [PublishResult][paleoquota.nostr.relay.PublishResult].

        Raises:
            PublishingError: If the relay answers ``OK`` with ``false``, or
                the same event is already waiting for acknowledgment.
            RelayTimeoutError: If no ``OK`` arrives within ``publish_timeout``.
            ConnectionClosedError: If the connection is not open or closes
                before the acknowledgment arrives.
        """
        if event.id in self._pending:
            raise PublishingError("duplicate: event is already awaiting acknowledgment", event.id)

        future: asyncio.Future[PublishResult] = asyncio.get_running_loop().create_future()
        self._pending[event.id] = future
        started = time.monotonic()
        try:
            await self._send([ClientMessageType.EVENT.value, event.to_dict()])
            self._logger.debug("event_sent", event_id=event.id, url=self.url)
            async with asyncio.timeout(self._config.publish_timeout):
                result = await future
        except TimeoutError:
            PUBLISHED_EVENTS.labels(result="timeout").inc()
            self._logger.warning("publish_timeout", event_id=event.id, url=self.url)
            raise RelayTimeoutError(
                f"no acknowledgment for {event.id} within {self._config.publish_timeout}s"
            ) from None
        except ConnectionClosedError:
            PUBLISHED_EVENTS.labels(result="closed").inc()
            raise
        finally:
            if self._pending.get(event.id) is future:
                del self._pending[event.id]

        PUBLISH_DURATION_SECONDS.observe(time.monotonic() - started)
        if not result.accepted:
            PUBLISHED_EVENTS.labels(result="rejected").inc()
            self._logger.warning(
                "publish_rejected", event_id=event.id, url=self.url, reason=result.message
            )
            raise PublishingError(result.message, event.id)

        PUBLISHED_EVENTS.labels(result="accepted").inc()
        self._logger.info("publish_accepted", event_id=event.id, url=self.url)
        return result

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        error = "closed by relay"
        try:
            while True:
                msg = await ws.receive()
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self.handle_message(msg.data)
                elif msg.type in (
                    aiohttp.WSMsgType.CLOSE,
                    aiohttp.WSMsgType.CLOSING,
                    aiohttp.WSMsgType.CLOSED,
                ):
                    break
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = str(ws.exception() or "websocket error")
                    break
        except (aiohttp.ClientError, OSError) as e:
            error = str(e)

        if self._closing:
            return
        self._logger.warning("relay_connection_lost", url=self.url, error=error)
        self._set_state(ConnectionState.FAILED)
        await self._teardown(f"connection lost ({error})")

    async def handle_message(self, text: str) -> None:
        """Interpret one relay frame. Malformed frames are logged and dropped."""
        try:
            message = parse_relay_message(text)
        except ProtocolError as e:
            self._logger.debug("frame_dropped", url=self.url, error=str(e))
            return

        kind = message[0]
        if kind == RelayMessageType.EVENT:
            await self._on_event(message)
        elif kind == RelayMessageType.OK:
            self._on_ok(message)
        elif kind == RelayMessageType.EOSE:
            handle = self._subscriptions.get(message[1]) if len(message) > 1 else None
            if handle is not None:
                handle.eose = True
                self._logger.debug("subscription_eose", subscription=handle.id)
        elif kind == RelayMessageType.NOTICE:
            notice = message[1] if len(message) > 1 else ""
            self._logger.info("relay_notice", url=self.url, message=notice)
        elif kind == RelayMessageType.CLOSED:
            sub_id = message[1] if len(message) > 1 else None
            if isinstance(sub_id, str) and self._subscriptions.pop(sub_id, None) is not None:
                reason = message[2] if len(message) > 2 else ""
                self._logger.warning(
                    "subscription_closed_by_relay", subscription=sub_id, reason=reason
                )
        else:
            self._logger.debug("frame_dropped", url=self.url, type=kind)

    async def _on_event(self, message: list[Any]) -> None:
        if len(message) < 3 or not isinstance(message[1], str):
            self._logger.debug("frame_dropped", url=self.url, type="EVENT", error="short frame")
            return
        handle = self._subscriptions.get(message[1])
        if handle is None:
            return
        try:
            event = Event.from_dict(message[2])
        except (TypeError, ValueError) as e:
            INBOUND_EVENTS.labels(outcome="malformed").inc()
            self._logger.debug("event_malformed", subscription=handle.id, error=str(e))
            return

        try:
            result = handle.callback(event)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:  # Intentionally broad: a consumer bug must not stop the reader
            self._logger.exception(
                "subscription_callback_failed", subscription=handle.id, event_id=event.id
            )

    def _on_ok(self, message: list[Any]) -> None:
        if len(message) < 3 or not isinstance(message[1], str) or not isinstance(message[2], bool):
            self._logger.debug("frame_dropped", url=self.url, type="OK", error="malformed OK")
            return
        event_id = message[1].lower()
        reason = message[3] if len(message) > 3 and isinstance(message[3], str) else ""
        future = self._pending.get(event_id)
        if future is not None and not future.done():
            future.set_result(PublishResult(event_id=event_id, accepted=message[2], message=reason))

    def __repr__(self) -> str:
        return f"RelayConnection(url={self.url}, state={self._state})"
