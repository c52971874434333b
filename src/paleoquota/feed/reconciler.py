"""
The canonical in-memory feed and its merge/dedup policy.

[FeedReconciler][paleoquota.feed.reconciler.FeedReconciler] is the only
writer of the feed. It merges three sources into one newest-first,
deduplicated sequence of [Post][paleoquota.models.post.Post]:

1. Posts cached by the [FeedStore][paleoquota.feed.store.FeedStore], loaded
   once at startup.
2. Text notes streamed by the relay subscription.
3. Posts submitted locally, shown as soon as the relay accepts them.

Two posts are the same post when their ``(pubkey, content)`` pair matches,
so the relay's echo of a local submission never shows up twice. Both
mutation paths take the same ``asyncio.Lock`` around "check dedup key,
mutate feed".

Examples:
    ```python
    config = ClientConfig.from_yaml("config/client.yaml")
    async with FeedReconciler(config) as reconciler:
        unregister = reconciler.add_listener(render)
        post = await reconciler.submit_post("gm")
        reconciler.get_feed_snapshot()[0] == post    # True
    ```

See Also:
    [RelayConnection][paleoquota.nostr.relay.RelayConnection]: The single
        long-lived connection owned by the reconciler.
    [EventCodec][paleoquota.nostr.codec.EventCodec]: Signs submissions and
        verifies inbound signatures.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from collections.abc import Callable
from typing import Any

from paleoquota.core.exceptions import (
    ConnectivityError,
    EncodingError,
    StoreError,
    StoreUnavailableError,
)
from paleoquota.core.logger import Logger
from paleoquota.core.metrics import FEED_SIZE, INBOUND_EVENTS
from paleoquota.models.constants import EventKind
from paleoquota.models.event import Event
from paleoquota.models.post import DedupKey, Post
from paleoquota.nostr.codec import EventCodec
from paleoquota.nostr.identity import IdentityProvider, Keypair
from paleoquota.nostr.relay import RelayConnection, SubscriptionHandle

from .configs import ClientConfig
from .store import FeedStore, create_store


FeedListener = Callable[[tuple[Post, ...]], None]


class FeedReconciler:
    """Owns the feed, the relay subscription, and the submission path.

    Lifecycle: [initialize()][paleoquota.feed.reconciler.FeedReconciler.initialize]
    seeds the feed from the store, [start()][paleoquota.feed.reconciler.FeedReconciler.start]
    connects and subscribes, [stop()][paleoquota.feed.reconciler.FeedReconciler.stop]
    unsubscribes and closes. ``async with`` runs all three and also closes
    the store.

    Collaborators default to what ``config`` describes and can be injected
    (tests pass fakes).
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        store: FeedStore | None = None,
        *,
        relay: RelayConnection | None = None,
        codec: EventCodec | None = None,
        identities: IdentityProvider | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._store = store if store is not None else create_store(self._config.store)
        self._relay = relay if relay is not None else RelayConnection(self._config.relay)
        self._codec = codec or EventCodec()
        self._identities = identities or IdentityProvider(self._config.identity)
        self._logger = Logger("reconciler")

        self._lock = asyncio.Lock()
        self._feed: deque[Post] = deque()
        self._keys: set[DedupKey] = set()
        self._listeners: list[FeedListener] = []
        self._subscription: SubscriptionHandle | None = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def store(self) -> FeedStore:
        return self._store

    @property
    def relay(self) -> RelayConnection:
        return self._relay

    @property
    def codec(self) -> EventCodec:
        return self._codec

    @property
    def identities(self) -> IdentityProvider:
        return self._identities

    @property
    def is_online(self) -> bool:
        """True while the relay is connected and the feed subscription is live."""
        return self._subscription is not None and self._relay.is_connected

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> tuple[Post, ...]:
        """Seed the feed from the store, newest first.

        Store failures degrade to an empty feed. Duplicate ``(pubkey,
        content)`` rows collapse to the newest one. At most
        ``max_feed_size`` posts are kept.

        Returns:
            The seeded feed snapshot.
        """
        try:
            await self._store.open()
            posts = await self._store.load()
        except StoreUnavailableError as e:
            self._logger.warning("store_unavailable", error=str(e))
            posts = []

        # Rows without a row id keep their relative order after the stored ones.
        ordered = sorted(
            posts, key=lambda p: (p.row_id is not None, p.row_id or 0), reverse=True
        )

        async with self._lock:
            self._feed.clear()
            self._keys.clear()
            limit = self._config.max_feed_size
            for post in ordered:
                if limit is not None and len(self._feed) >= limit:
                    break
                if post.dedup_key in self._keys:
                    continue
                self._keys.add(post.dedup_key)
                self._feed.append(post)
            snapshot = self._publish_snapshot()

        self._logger.info("feed_initialized", posts=len(snapshot), cached=len(posts))
        return snapshot

    async def start(self) -> None:
        """Connect to the relay and subscribe to text notes.

        A relay that cannot be reached is logged and the reconciler stays
        usable offline: snapshots work, submissions fail.
        """
        if self.is_online:
            return

        filters: dict[str, Any] = {"kinds": [EventKind.TEXT_NOTE.value]}
        if self._config.relay.backfill_limit is not None:
            filters["limit"] = self._config.relay.backfill_limit

        try:
            await self._relay.connect()
            self._subscription = await self._relay.subscribe(filters, self.on_remote_event)
        except ConnectivityError as e:
            self._subscription = None
            self._logger.warning("relay_unavailable", url=self._relay.url, error=str(e))

    async def stop(self) -> None:
        """Unsubscribe, then close the relay connection. Idempotent."""
        handle, self._subscription = self._subscription, None
        try:
            if handle is not None:
                await self._relay.unsubscribe(handle)
        finally:
            await self._relay.close()

    async def __aenter__(self) -> FeedReconciler:
        await self.initialize()
        try:
            await self.start()
        except BaseException:
            await self._store.close()
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        try:
            await self.stop()
        finally:
            await self._store.close()

    # -------------------------------------------------------------------------
    # Mutation paths
    # -------------------------------------------------------------------------

    async def on_remote_event(self, event: Event) -> None:
        """Merge one inbound event into the feed.

        Events that are not text notes, have blank content, or (with
        ``verify_signatures``) fail signature verification are dropped.
        An event whose ``(pubkey, content)`` is already shown is a no-op.
        """
        if event.kind != EventKind.TEXT_NOTE:
            self._drop(event, "kind")
            return
        try:
            post = Post.from_event(event)
        except (TypeError, ValueError):
            self._drop(event, "content")
            return
        if self._config.verify_signatures and not self._codec.verify(event):
            self._drop(event, "signature")
            return

        async with self._lock:
            if post.dedup_key in self._keys:
                INBOUND_EVENTS.labels(outcome="duplicate").inc()
                self._logger.debug("event_duplicate", event_id=event.id)
                return
            self._prepend(post)
            self._publish_snapshot()

        INBOUND_EVENTS.labels(outcome="accepted").inc()
        self._logger.debug("event_accepted", event_id=event.id, pubkey=event.pubkey)

    def _drop(self, event: Event, reason: str) -> None:
        INBOUND_EVENTS.labels(outcome="dropped").inc()
        self._logger.debug("event_dropped", event_id=event.id, reason=reason)

    async def submit(self, content: str, keypair: Keypair) -> Post:
        """Sign, publish and show a post authored by *keypair*.

        The post is committed to the store and the feed only after the relay
        accepts it. If the relay's echo already inserted the same post, the
        feed is left unchanged. A store failure after acceptance is logged
        and the post is still shown, since it already lives on the relay.

        Args:
            content: Post text, non-blank.
            keypair: Author keypair.

        Returns:
            The submitted post.

        Raises:
            EncodingError: If the content is blank or not valid UTF-8 text.
            PublishingError: If the relay rejects the event.
            RelayTimeoutError: If the relay does not acknowledge in time.
            ConnectionClosedError: If the relay is not connected or the
                connection closes while waiting.
        """
        if not isinstance(content, str) or not content.strip():
            raise EncodingError("post content must not be blank")

        event = self._codec.sign_event(content, keypair)
        try:
            post = Post.from_event(event)
        except (TypeError, ValueError) as e:
            raise EncodingError(str(e)) from e

        await self._relay.publish(event)

        async with self._lock:
            try:
                await self._store.append(post)
            except StoreError as e:
                self._logger.error("store_append_failed", event_id=event.id, error=str(e))
            if post.dedup_key in self._keys:
                self._logger.debug("echo_already_shown", event_id=event.id)
            else:
                self._prepend(post)
                self._publish_snapshot()

        self._logger.info("post_submitted", event_id=event.id, pubkey=post.pubkey)
        return post

    async def submit_post(self, content: str) -> Post:
        """Submit *content* signed by the identity provider's current keypair.

        Raises:
            EncodingError: See [submit()][paleoquota.feed.reconciler.FeedReconciler.submit].
            PublishingError: See [submit()][paleoquota.feed.reconciler.FeedReconciler.submit].
            ConnectivityError: See [submit()][paleoquota.feed.reconciler.FeedReconciler.submit].
        """
        return await self.submit(content, self._identities.current())

    def _prepend(self, post: Post) -> None:
        self._feed.appendleft(post)
        self._keys.add(post.dedup_key)
        limit = self._config.max_feed_size
        # An evicted key is forgotten, so that post may be shown again later.
        while limit is not None and len(self._feed) > limit:
            self._keys.discard(self._feed.pop().dedup_key)

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def get_feed_snapshot(self) -> tuple[Post, ...]:
        """Return the feed, newest first, as an immutable snapshot."""
        return tuple(self._feed)

    def add_listener(self, listener: FeedListener) -> Callable[[], None]:
        """Register a feed-change hook, called with the new snapshot.

        Returns:
            A function that unregisters the listener. Calling it twice is safe.
        """
        self._listeners.append(listener)

        def unregister() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unregister

    def _publish_snapshot(self) -> tuple[Post, ...]:
        snapshot = self.get_feed_snapshot()
        FEED_SIZE.set(len(snapshot))
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # Intentionally broad: one bad listener must not block the others
                self._logger.exception("listener_failed")
        return snapshot

    def __repr__(self) -> str:
        return (
            f"FeedReconciler(posts={len(self._feed)}, online={self.is_online}, "
            f"relay={self._relay.url})"
        )
