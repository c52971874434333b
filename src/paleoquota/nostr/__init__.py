"""Nostr protocol layer: event signing, identities, and the relay connection.

Depends on [paleoquota.core][paleoquota.core] and
[paleoquota.models][paleoquota.models]; used by
[paleoquota.feed][paleoquota.feed].

Attributes:
    EventCodec: Canonical NIP-01 serialization, event id digest, Schnorr
        signing and verification.
    IdentityProvider: Hands out the keypair that signs the next post.
    RelayConnection: One persistent WebSocket to a relay with multiplexed
        subscriptions and acknowledged publishing.
"""

from .codec import EventCodec
from .identity import IdentityConfig, IdentityProvider, Keypair
from .relay import (
    ConnectionState,
    PublishResult,
    RelayConfig,
    RelayConnection,
    SubscriptionHandle,
)


__all__ = [
    "ConnectionState",
    "EventCodec",
    "IdentityConfig",
    "IdentityProvider",
    "Keypair",
    "PublishResult",
    "RelayConfig",
    "RelayConnection",
    "SubscriptionHandle",
]
