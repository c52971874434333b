"""Shared validation helpers for frozen dataclass models.

Private module -- not part of the public API. Used by ``__post_init__`` and
``from_dict`` methods in sibling model modules to enforce runtime type
constraints and null-byte safety.
"""

from __future__ import annotations

from typing import Any


_HEX_DIGITS = frozenset("0123456789abcdef")


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_int(value: Any, name: str, *, minimum: int = 0, maximum: int | None = None) -> None:
    """Raise if *value* is not an ``int`` (``bool`` excluded) within range."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be <= {maximum}")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_str_not_blank(value: Any, name: str) -> None:
    """Raise if *value* is empty or whitespace only (after the str checks)."""
    validate_str_no_null(value, name)
    if not value.strip():
        raise ValueError(f"{name} must not be blank")


def validate_hex(value: Any, name: str, length: int) -> None:
    """Raise if *value* is not a lowercase hex string of exactly *length* chars."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if len(value) != length or not _HEX_DIGITS.issuperset(value):
        raise ValueError(f"{name} must be {length} lowercase hex characters")


def freeze_tags(tags: Any, name: str = "tags") -> tuple[tuple[str, ...], ...]:
    """Validate a list of tag arrays and return it as nested tuples.

    Raises:
        TypeError: If *tags* is not a sequence of sequences of ``str``.
    """
    if isinstance(tags, str | bytes) or not isinstance(tags, list | tuple):
        raise TypeError(f"{name} must be a list of tag arrays, got {type(tags).__name__}")
    frozen: list[tuple[str, ...]] = []
    for tag in tags:
        if isinstance(tag, str | bytes) or not isinstance(tag, list | tuple):
            raise TypeError(f"{name} entries must be lists, got {type(tag).__name__}")
        for value in tag:
            validate_str_no_null(value, f"{name} value")
        frozen.append(tuple(tag))
    return tuple(frozen)
