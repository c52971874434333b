"""PaleoQuota exception hierarchy.

Provides typed exceptions for every failure category of the client so that
callers can tell recoverable startup problems (store, relay link) from
submission failures that must reach the user.

Exception hierarchy:

```text
PaleoQuotaError (base -- never raised directly)
├── ConfigurationError         -- config validation, bad YAML, missing key env var
├── StoreError                 -- local cache write failure
│   └── StoreUnavailableError  -- local cache cannot be opened or read
├── ConnectivityError          -- relay link problems
│   ├── RelayConnectionError   -- cannot establish the link (is a ConnectionError)
│   ├── RelayTimeoutError      -- no acknowledgment in time (is a TimeoutError)
│   └── ConnectionClosedError  -- link torn down under a pending operation
├── ProtocolError              -- malformed relay frame or event
│   └── EncodingError          -- malformed content or event construction
└── PublishingError            -- relay rejected a published event
```

``RelayConnectionError`` and ``RelayTimeoutError`` also derive from the
builtin ``ConnectionError`` / ``TimeoutError`` so code written against the
standard library exceptions keeps working.

See Also:
    [RelayConnection][paleoquota.nostr.relay.RelayConnection]: Raises the
        connectivity and publishing errors.
    [FeedReconciler][paleoquota.feed.reconciler.FeedReconciler]: Recovers
        from store and connectivity errors at startup.
"""

from __future__ import annotations


class PaleoQuotaError(Exception):
    """Base exception for all PaleoQuota errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(PaleoQuotaError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Local store
# ---------------------------------------------------------------------------


class StoreError(PaleoQuotaError):
    """The local post cache failed to persist a post."""


class StoreUnavailableError(StoreError):
    """The local post cache cannot be opened or read.

    The reconciler degrades to an empty feed when this is raised at startup.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(PaleoQuotaError):
    """Base for all relay link errors."""


class RelayConnectionError(ConnectivityError, ConnectionError):
    """The relay is unreachable, TLS failed, or the handshake was rejected."""


class RelayTimeoutError(ConnectivityError, TimeoutError):
    """The relay did not answer within the configured window."""


class ConnectionClosedError(ConnectivityError):
    """The relay connection was closed while an operation was pending."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(PaleoQuotaError):
    """A relay frame or event does not follow NIP-01."""


class EncodingError(ProtocolError):
    """Content or tags cannot be encoded into a valid event."""


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class PublishingError(PaleoQuotaError):
    """The relay rejected a published event.

    Attributes:
        reason: Machine-readable prefix and message sent by the relay in its
            ``OK`` frame (e.g. ``"invalid: bad signature"``).
        event_id: Id of the rejected event, when known.
    """

    def __init__(self, reason: str, event_id: str | None = None) -> None:
        super().__init__(f"relay rejected event: {reason}" if reason else "relay rejected event")
        self.reason = reason
        self.event_id = event_id
