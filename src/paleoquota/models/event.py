"""
Immutable NIP-01 events: the unsigned template and the signed wire object.

[UnsignedEvent][paleoquota.models.event.UnsignedEvent] holds the five fields
that feed the event id digest. [Event][paleoquota.models.event.Event] adds the
derived ``id`` and the Schnorr ``sig`` and converts to and from the JSON
object carried in ``["EVENT", ...]`` frames.

Both models are pure: they validate shape (hex lengths, integer ranges,
tag structure) but never hash or sign. Digest and signature work lives in
[EventCodec][paleoquota.nostr.codec.EventCodec].

See Also:
    [Post][paleoquota.models.post.Post]: Feed entry derived from an event.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ._validation import (
    freeze_tags,
    validate_hex,
    validate_instance,
    validate_int,
    validate_str_no_null,
)
from .constants import EVENT_KIND_MAX, HEX_KEY_LENGTH, HEX_SIG_LENGTH, EventKind


_WIRE_FIELDS = ("id", "pubkey", "created_at", "kind", "tags", "content", "sig")


@dataclass(frozen=True, slots=True)
class UnsignedEvent:
    """Event fields before the id and signature are derived.

    ``tags`` is accepted as any list of string lists and stored as nested
    tuples so the instance stays hashable and immutable.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If ``pubkey`` is not 64 lowercase hex chars, ``created_at``
            is negative, ``kind`` is out of range, or content/tags contain
            null bytes.
    """

    pubkey: str
    created_at: int
    content: str
    kind: int = EventKind.TEXT_NOTE
    tags: tuple[tuple[str, ...], ...] = ()

    def __post_init__(self) -> None:
        validate_hex(self.pubkey, "pubkey", HEX_KEY_LENGTH)
        validate_int(self.created_at, "created_at")
        validate_int(self.kind, "kind", maximum=EVENT_KIND_MAX)
        validate_str_no_null(self.content, "content")
        object.__setattr__(self, "kind", int(self.kind))
        object.__setattr__(self, "tags", freeze_tags(self.tags))

    def tags_list(self) -> list[list[str]]:
        """Return ``tags`` as JSON-ready nested lists."""
        return [list(tag) for tag in self.tags]

    def signed(self, event_id: str, sig: str) -> Event:
        """Attach a derived id and signature, producing a wire
        [Event][paleoquota.models.event.Event]."""
        return Event(
            id=event_id,
            pubkey=self.pubkey,
            created_at=self.created_at,
            kind=self.kind,
            tags=self.tags,
            content=self.content,
            sig=sig,
        )


@dataclass(frozen=True, slots=True)
class Event:
    """A signed NIP-01 event as exchanged with the relay.

    Examples:
        ```python
        event = Event.from_dict(frame[2])
        event.kind          # 1
        event.to_dict()     # {"id": "...", "pubkey": "...", ...}
        ```

    Note:
        Construction only checks shape. Whether ``id`` really is the digest
        of the other fields and ``sig`` verifies against ``pubkey`` is
        decided by [EventCodec.verify()][paleoquota.nostr.codec.EventCodec.verify].
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...]
    content: str
    sig: str

    def __post_init__(self) -> None:
        validate_hex(self.id, "id", HEX_KEY_LENGTH)
        validate_hex(self.pubkey, "pubkey", HEX_KEY_LENGTH)
        validate_int(self.created_at, "created_at")
        validate_int(self.kind, "kind", maximum=EVENT_KIND_MAX)
        validate_str_no_null(self.content, "content")
        object.__setattr__(self, "kind", int(self.kind))
        validate_hex(self.sig, "sig", HEX_SIG_LENGTH)
        object.__setattr__(self, "tags", freeze_tags(self.tags))

    def unsigned(self) -> UnsignedEvent:
        """Return the fields covered by the id digest."""
        return UnsignedEvent(
            pubkey=self.pubkey,
            created_at=self.created_at,
            content=self.content,
            kind=self.kind,
            tags=self.tags,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object for this event."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Event:
        """Parse an event object received from a relay.

        Unknown extra keys are ignored. Hex fields are accepted in any case
        and normalized to lowercase.

        Raises:
            TypeError: If *data* is not a mapping or a field has the wrong type.
            ValueError: If a field is missing or malformed.
        """
        validate_instance(data, Mapping, "event")
        missing = [name for name in _WIRE_FIELDS if name not in data]
        if missing:
            raise ValueError(f"event is missing fields: {', '.join(missing)}")

        def _hex(name: str) -> Any:
            value = data[name]
            return value.lower() if isinstance(value, str) else value

        return cls(
            id=_hex("id"),
            pubkey=_hex("pubkey"),
            created_at=data["created_at"],
            kind=data["kind"],
            tags=data["tags"],
            content=data["content"],
            sig=_hex("sig"),
        )
