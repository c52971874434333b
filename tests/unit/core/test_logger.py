"""
Unit tests for core.logger module.

Tests:
- Logger initialization
- format_kv_pairs() escaping and truncation
- StructuredFormatter output
- JSON output mode
"""

import json
import logging

import pytest

from paleoquota.core.logger import Logger, StructuredFormatter, format_kv_pairs


class TestInit:
    """Logger initialization."""

    def test_name(self) -> None:
        logger = Logger("relay")
        assert logger.name == "relay"

    def test_default_not_json(self) -> None:
        assert Logger("test")._json_output is False

    def test_default_max_value_length(self) -> None:
        assert Logger("test")._max_value_length == 1000


class TestFormatKvPairs:
    """Key-value pairs formatting and escaping."""

    def test_empty(self) -> None:
        assert format_kv_pairs({}) == ""

    def test_simple(self) -> None:
        assert format_kv_pairs({"key": "hello"}) == " key=hello"
        assert format_kv_pairs({"key": 123}) == " key=123"

    def test_multiple(self) -> None:
        assert format_kv_pairs({"a": 1, "b": 2}) == " a=1 b=2"

    def test_with_spaces(self) -> None:
        assert format_kv_pairs({"key": "hello world"}) == ' key="hello world"'

    def test_with_equals(self) -> None:
        assert format_kv_pairs({"key": "foo=bar"}) == ' key="foo=bar"'

    def test_with_double_quotes(self) -> None:
        assert format_kv_pairs({"key": 'say "gm"'}) == ' key="say \\"gm\\""'

    def test_with_newline(self) -> None:
        assert format_kv_pairs({"key": "a\nb"}) == ' key="a\\nb"'

    def test_empty_value(self) -> None:
        assert format_kv_pairs({"key": ""}) == ' key=""'

    def test_truncation(self) -> None:
        """The marker contains spaces, so the truncated value is quoted."""
        result = format_kv_pairs({"key": "x" * 20}, max_value_length=5)
        assert result == ' key="xxxxx...<truncated 15 chars>"'

    def test_no_truncation_when_disabled(self) -> None:
        assert format_kv_pairs({"key": "x" * 20}, max_value_length=None) == " key=" + "x" * 20

    def test_custom_prefix(self) -> None:
        assert format_kv_pairs({"k": "v"}, prefix="") == "k=v"


class TestStructuredFormatter:
    """Formatting of records with and without structured context."""

    def _record(self, msg: str, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord("relay", logging.INFO, __file__, 1, msg, None, None)
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_plain_record(self) -> None:
        assert StructuredFormatter().format(self._record("hello")) == "info relay hello"

    def test_structured_record(self) -> None:
        record = self._record("relay_connected", structured_kv={"url": "wss://relay.test"})
        assert StructuredFormatter().format(record) == "info relay relay_connected url=wss://relay.test"


class TestLogging:
    """Log calls reach the stdlib logger with structured extras."""

    def test_info_attaches_kv(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_kv")
        with caplog.at_level(logging.INFO, logger="test_kv"):
            logger.info("post_added", pubkey="abc", count=3)
        record = caplog.records[-1]
        assert record.getMessage() == "post_added"
        assert record.structured_kv == {"pubkey": "abc", "count": 3}

    def test_long_strings_truncated(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_trunc", max_value_length=4)
        with caplog.at_level(logging.INFO, logger="test_trunc"):
            logger.info("post", content="abcdefgh", count=123456)
        kv = caplog.records[-1].structured_kv
        assert kv["content"].startswith("abcd...")
        assert kv["count"] == 123456

    def test_disabled_level_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_disabled")
        with caplog.at_level(logging.WARNING, logger="test_disabled"):
            logger.debug("hidden")
        assert not [r for r in caplog.records if r.name == "test_disabled"]

    def test_exception_includes_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_exc")
        with caplog.at_level(logging.ERROR, logger="test_exc"):
            try:
                raise ValueError("boom")
            except ValueError:
                logger.exception("failed")
        assert caplog.records[-1].exc_info is not None

    def test_json_output(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_json", json_output=True)
        with caplog.at_level(logging.INFO, logger="test_json"):
            logger.info("post_added", source="relay")
        data = json.loads(caplog.records[-1].getMessage())
        assert data["message"] == "post_added"
        assert data["level"] == "info"
        assert data["service"] == "test_json"
        assert data["source"] == "relay"
