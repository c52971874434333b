"""Tests for lazy import system in paleoquota.__init__."""

from __future__ import annotations

import pytest


class TestLazyImports:
    """Test PEP 562 lazy loading in paleoquota.__init__."""

    def test_lazy_import_resolves_on_access(self) -> None:
        """Verify that lazy attributes resolve correctly."""
        from paleoquota import FeedReconciler
        from paleoquota.feed.reconciler import FeedReconciler as DirectFeedReconciler

        assert FeedReconciler is DirectFeedReconciler

    def test_lazy_import_caches_after_first_access(self) -> None:
        """Verify that resolved attributes are cached in globals."""
        import paleoquota

        _ = paleoquota.EventCodec

        assert "EventCodec" in vars(paleoquota)

    def test_lazy_import_invalid_attribute(self) -> None:
        """Verify that invalid attributes raise AttributeError."""
        import paleoquota

        with pytest.raises(AttributeError, match="no_such_thing"):
            _ = getattr(paleoquota, "no_such_thing")  # noqa: B009

    def test_all_exports_are_in_lazy_imports(self) -> None:
        """Verify that __all__ and _LAZY_IMPORTS are in sync."""
        import paleoquota

        assert set(paleoquota.__all__) == set(paleoquota._LAZY_IMPORTS)

    def test_dir_lists_exports(self) -> None:
        import paleoquota

        assert "RelayConnection" in dir(paleoquota)

    def test_version(self) -> None:
        import paleoquota

        assert isinstance(paleoquota.__version__, str)
