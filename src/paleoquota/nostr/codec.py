"""NIP-01 event construction, identity digest, and Schnorr signing.

The event id is the SHA-256 of the canonical serialization

    [0, <pubkey>, <created_at>, <kind>, <tags>, <content>]

as compact UTF-8 JSON (no whitespace, non-ASCII characters unescaped, the
JSON short escapes for ``\\n``, ``\\"``, ``\\\\``, ``\\r``, ``\\t``, ``\\b``,
``\\f``). The signature is a BIP-340 Schnorr signature over the 32-byte id,
produced by ``nostr_sdk.Keys.sign_schnorr``.

Examples:
    ```python
    codec = EventCodec()
    event = codec.sign_event("gm", keypair, created_at=1_700_000_000)
    codec.verify(event)     # True
    ```

See Also:
    [Event][paleoquota.models.event.Event]: The signed wire object.
    [RelayConnection.publish()][paleoquota.nostr.relay.RelayConnection.publish]:
        Sends the signed event to the relay.
"""

from __future__ import annotations

import hashlib
import json
import time

from nostr_sdk import Event as NostrEvent
from nostr_sdk import NostrSdkError

from paleoquota.core.exceptions import EncodingError
from paleoquota.models.constants import EventKind
from paleoquota.models.event import Event, UnsignedEvent

from .identity import Keypair


class EventCodec:
    """Builds, identifies, signs, and verifies text-note events."""

    @staticmethod
    def build(
        content: str,
        pubkey: str,
        created_at: int,
        tags: list[list[str]] | None = None,
    ) -> UnsignedEvent:
        """Populate a kind-1 event template.

        Raises:
            EncodingError: If the content is not UTF-8 representable text or
                the tags are malformed.
        """
        if not isinstance(content, str):
            raise EncodingError(f"content must be a str, got {type(content).__name__}")
        try:
            content.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(f"content is not valid UTF-8 text: {e.reason}") from e

        try:
            return UnsignedEvent(
                pubkey=pubkey,
                created_at=created_at,
                content=content,
                kind=EventKind.TEXT_NOTE,
                tags=tags if tags is not None else [],
            )
        except (TypeError, ValueError) as e:
            raise EncodingError(str(e)) from e

    @staticmethod
    def serialize(unsigned: UnsignedEvent) -> bytes:
        """Return the canonical byte serialization hashed into the event id.

        Raises:
            EncodingError: If a string field holds lone surrogates.
        """
        payload = [
            0,
            unsigned.pubkey,
            unsigned.created_at,
            unsigned.kind,
            unsigned.tags_list(),
            unsigned.content,
        ]
        text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        try:
            return text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(f"event is not valid UTF-8 text: {e.reason}") from e

    @classmethod
    def compute_id(cls, unsigned: UnsignedEvent) -> str:
        """Return the event id: lowercase hex SHA-256 of :meth:`serialize`."""
        return hashlib.sha256(cls.serialize(unsigned)).hexdigest()

    @staticmethod
    def sign(event_id: str, keypair: Keypair) -> str:
        """Schnorr-sign the 32-byte event id, returning a 128-char hex signature.

        Raises:
            EncodingError: If ``event_id`` is not 64 hex chars.
        """
        try:
            digest = bytes.fromhex(event_id)
        except ValueError as e:
            raise EncodingError("event id must be hex") from e
        if len(digest) != 32:
            raise EncodingError("event id must be 32 bytes")
        return keypair.keys.sign_schnorr(digest)

    def sign_event(
        self,
        content: str,
        keypair: Keypair,
        created_at: int | None = None,
    ) -> Event:
        """Build, identify, and sign a text note authored by *keypair*.

        Args:
            content: Post text.
            keypair: Author keypair.
            created_at: Unix timestamp; defaults to now.
        """
        if created_at is None:
            created_at = int(time.time())
        unsigned = self.build(content, keypair.public_key, created_at)
        event_id = self.compute_id(unsigned)
        return unsigned.signed(event_id, self.sign(event_id, keypair))

    def verify(self, event: Event) -> bool:
        """Check that ``id`` is the digest of the event and ``sig`` verifies.

        Returns ``False`` for any malformed input instead of raising.
        """
        try:
            if self.compute_id(event.unsigned()) != event.id:
                return False
            return bool(NostrEvent.from_json(json.dumps(event.to_dict())).verify())
        except (EncodingError, NostrSdkError, TypeError, ValueError):
            return False
