r"""PaleoQuota -- a minimal Nostr text-note client.

Users compose short text posts that are signed and broadcast to one public
relay; the same client subscribes to the relay's live stream and shows
posts from every participant, merged with a local durable cache into one
deduplicated, newest-first feed.

Imports flow strictly downward:

```text
              feed             Reconciler, post cache, configuration
               |
             nostr             Event codec, identities, relay connection
             /   \
          core   models        Infrastructure / pure frozen dataclasses
```

Attributes:
    models: Pure frozen dataclasses. Zero I/O, depends only on stdlib.
    core: Exceptions, structured logging, YAML loading, metrics, asyncpg pool.
    nostr: NIP-01 event signing, keypairs, and the WebSocket relay connection.
    feed: The feed reconciler, the post cache, and ``ClientConfig``.

Note:
    Top-level imports (``from paleoquota import FeedReconciler``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("paleoquota")

__all__ = [
    "ClientConfig",
    "Event",
    "EventCodec",
    "FeedReconciler",
    "IdentityProvider",
    "Keypair",
    "Logger",
    "MemoryFeedStore",
    "PostgresFeedStore",
    "Post",
    "RelayConnection",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Logger": ("paleoquota.core", "Logger"),
    "Event": ("paleoquota.models", "Event"),
    "Post": ("paleoquota.models", "Post"),
    "EventCodec": ("paleoquota.nostr", "EventCodec"),
    "IdentityProvider": ("paleoquota.nostr", "IdentityProvider"),
    "Keypair": ("paleoquota.nostr", "Keypair"),
    "RelayConnection": ("paleoquota.nostr", "RelayConnection"),
    "ClientConfig": ("paleoquota.feed", "ClientConfig"),
    "FeedReconciler": ("paleoquota.feed", "FeedReconciler"),
    "MemoryFeedStore": ("paleoquota.feed", "MemoryFeedStore"),
    "PostgresFeedStore": ("paleoquota.feed", "PostgresFeedStore"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'paleoquota' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
