"""Pure frozen dataclasses with zero I/O for Nostr events and feed posts.

The models layer has no dependencies on other PaleoQuota packages, only on
the standard library. Every model uses ``@dataclass(frozen=True, slots=True)``
and validates in ``__post_init__``, so invalid instances never escape the
constructor. Validation failures raise ``TypeError`` or ``ValueError``; the
layers above translate them into the
[PaleoQuotaError][paleoquota.core.exceptions.PaleoQuotaError] hierarchy.

Attributes:
    UnsignedEvent: Event fields covered by the id digest.
    Event: Signed NIP-01 event with wire (JSON object) conversion.
    Post: Feed entry identified by ``(pubkey, content)``.
    EventKind: Event kinds handled by the client.
"""

from .constants import (
    EVENT_KIND_MAX,
    ClientMessageType,
    EventKind,
    RelayMessageType,
)
from .event import Event, UnsignedEvent
from .post import DedupKey, Post, PostDbParams


__all__ = [
    "EVENT_KIND_MAX",
    "ClientMessageType",
    "DedupKey",
    "Event",
    "EventKind",
    "Post",
    "PostDbParams",
    "RelayMessageType",
    "UnsignedEvent",
]
