"""
Feed entries and their storage row representation.

A [Post][paleoquota.models.post.Post] is what the feed displays: the text and
the author's public key. Two posts are the same post when author and text
match, regardless of which event carried them; that pair is the
[dedup_key][paleoquota.models.post.Post.dedup_key] used by the reconciler to
collapse relay echoes of locally submitted posts.

See Also:
    [FeedStore][paleoquota.feed.store.FeedStore]: Persists posts as
        [PostDbParams][paleoquota.models.post.PostDbParams] rows.
    [FeedReconciler][paleoquota.feed.reconciler.FeedReconciler]: Owns the
        ordered, deduplicated feed of posts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

from ._validation import validate_hex, validate_int, validate_str_not_blank
from .constants import HEX_KEY_LENGTH
from .event import Event


DedupKey = tuple[str, str]


class PostDbParams(NamedTuple):
    """Positional parameters for the ``post`` table insert.

    Attributes:
        content: Post text.
        pubkey: Author public key as 64-char hex.
    """

    content: str
    pubkey: str


@dataclass(frozen=True, slots=True)
class Post:
    """Immutable feed entry.

    Attributes:
        content: Post text, non-blank.
        pubkey: Author public key, 64 lowercase hex chars.
        row_id: Auto-increment id of the cached row when the post was loaded
            from a store. Used only for ordering; excluded from equality and
            hashing.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If content is blank or contains null bytes, or the public
            key is not 64 lowercase hex chars.

    Examples:
        ```python
        post = Post("gm", keypair.public_key)
        post.dedup_key      # (keypair.public_key, "gm")
        ```
    """

    content: str
    pubkey: str
    row_id: int | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        validate_str_not_blank(self.content, "content")
        validate_hex(self.pubkey, "pubkey", HEX_KEY_LENGTH)
        if self.row_id is not None:
            validate_int(self.row_id, "row_id")

    @property
    def dedup_key(self) -> DedupKey:
        """The ``(pubkey, content)`` pair identifying this post in the feed."""
        return (self.pubkey, self.content)

    @classmethod
    def from_event(cls, event: Event) -> Post:
        """Build a post from a text-note event.

        Raises:
            ValueError: If the event content is blank.
        """
        return cls(content=event.content, pubkey=event.pubkey)

    def to_db_params(self) -> PostDbParams:
        return PostDbParams(content=self.content, pubkey=self.pubkey)

    @classmethod
    def from_db_params(cls, params: PostDbParams, row_id: int | None = None) -> Post:
        """Reconstruct a post from a stored row."""
        return cls(content=params.content, pubkey=params.pubkey, row_id=row_id)
