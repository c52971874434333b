"""Shared constants for the models layer.

Event kinds and the NIP-01 message type tags used on the wire. Kept in the
models layer so both [paleoquota.nostr][] and [paleoquota.feed][] can import
them without circular dependencies.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


EVENT_KIND_MAX = 65_535

HEX_KEY_LENGTH = 64
HEX_SIG_LENGTH = 128


class EventKind(IntEnum):
    """Nostr event kinds handled by the client.

    Attributes:
        TEXT_NOTE: Plain-text short post (NIP-01 kind 1). The only kind the
            feed displays.
    """

    TEXT_NOTE = 1


class ClientMessageType(StrEnum):
    """Message tags sent by the client to a relay (NIP-01)."""

    REQ = "REQ"
    EVENT = "EVENT"
    CLOSE = "CLOSE"


class RelayMessageType(StrEnum):
    """Message tags sent by a relay to the client (NIP-01).

    Attributes:
        EVENT: ``["EVENT", sub_id, event]`` -- an event matching a subscription.
        OK: ``["OK", event_id, accepted, message]`` -- publish acknowledgment.
        EOSE: ``["EOSE", sub_id]`` -- end of stored events, live stream follows.
        NOTICE: ``["NOTICE", message]`` -- human-readable relay message.
        CLOSED: ``["CLOSED", sub_id, message]`` -- relay ended a subscription.
    """

    EVENT = "EVENT"
    OK = "OK"
    EOSE = "EOSE"
    NOTICE = "NOTICE"
    CLOSED = "CLOSED"
