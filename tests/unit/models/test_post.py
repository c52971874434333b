"""
Unit tests for models.post module.

Tests:
- Post validation
- dedup_key identity (pubkey, content) independent of row_id
- from_event(), to_db_params(), from_db_params()
"""

import pytest

from paleoquota.models import Event, Post, PostDbParams


PUBKEY = "b" * 64


class TestPostValidation:
    """Post construction."""

    def test_valid(self) -> None:
        post = Post("gm", PUBKEY)
        assert post.content == "gm"
        assert post.pubkey == PUBKEY
        assert post.row_id is None

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_content_rejected(self, content: str) -> None:
        with pytest.raises(ValueError, match="blank"):
            Post(content, PUBKEY)

    def test_non_str_content(self) -> None:
        with pytest.raises(TypeError):
            Post(b"gm", PUBKEY)  # type: ignore[arg-type]

    def test_invalid_pubkey(self) -> None:
        with pytest.raises(ValueError, match="pubkey"):
            Post("gm", "xyz")

    def test_negative_row_id(self) -> None:
        with pytest.raises(ValueError, match="row_id"):
            Post("gm", PUBKEY, row_id=-1)

    def test_unicode_content(self) -> None:
        assert Post("¡buenos días! 🌅", PUBKEY).content == "¡buenos días! 🌅"


class TestDedupKey:
    """Same author and same text are the same post."""

    def test_key(self) -> None:
        assert Post("gm", PUBKEY).dedup_key == (PUBKEY, "gm")

    def test_row_id_ignored_in_equality(self) -> None:
        assert Post("gm", PUBKEY, row_id=1) == Post("gm", PUBKEY, row_id=7)
        assert hash(Post("gm", PUBKEY, row_id=1)) == hash(Post("gm", PUBKEY))

    def test_different_author_different_key(self) -> None:
        assert Post("gm", PUBKEY).dedup_key != Post("gm", "c" * 64).dedup_key

    def test_content_is_not_trimmed(self) -> None:
        assert Post("gm ", PUBKEY).dedup_key != Post("gm", PUBKEY).dedup_key


class TestConversions:
    """Event and storage row conversions."""

    def test_from_event(self) -> None:
        event = Event(
            id="a" * 64,
            pubkey=PUBKEY,
            created_at=1,
            kind=1,
            tags=(),
            content="gm",
            sig="c" * 128,
        )
        assert Post.from_event(event) == Post("gm", PUBKEY)

    def test_to_db_params(self) -> None:
        assert Post("gm", PUBKEY).to_db_params() == PostDbParams(content="gm", pubkey=PUBKEY)

    def test_from_db_params(self) -> None:
        post = Post.from_db_params(PostDbParams("gm", PUBKEY), row_id=3)
        assert post.row_id == 3
        assert post.dedup_key == (PUBKEY, "gm")
