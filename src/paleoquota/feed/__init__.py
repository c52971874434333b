"""Feed layer: configuration, the post cache, and the reconciler.

Top of the layer stack; depends on [paleoquota.nostr][paleoquota.nostr],
[paleoquota.core][paleoquota.core] and [paleoquota.models][paleoquota.models].

Attributes:
    ClientConfig: Aggregate configuration loaded from YAML.
    FeedStore: Protocol for the insert-and-scan-all post cache.
    FeedReconciler: Owns the deduplicated newest-first feed and exposes the
        UI contract (``get_feed_snapshot``, ``submit_post``, ``add_listener``).
"""

from .configs import ClientConfig, StoreConfig
from .reconciler import FeedListener, FeedReconciler
from .store import FeedStore, MemoryFeedStore, PostgresFeedStore, create_store


__all__ = [
    "ClientConfig",
    "FeedListener",
    "FeedReconciler",
    "FeedStore",
    "MemoryFeedStore",
    "PostgresFeedStore",
    "StoreConfig",
    "create_store",
]
