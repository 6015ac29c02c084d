"""Tests for lazy import system in crawlr.__init__."""

from __future__ import annotations

import importlib
import sys

import pytest


class TestLazyImports:
    """Test PEP 562 lazy loading in crawlr.__init__."""

    def test_lazy_import_does_not_eagerly_load(self) -> None:
        """Importing crawlr does not load its subpackages."""
        saved = {name: mod for name, mod in sys.modules.items() if name.startswith("crawlr")}
        for name in saved:
            del sys.modules[name]
        try:
            importlib.import_module("crawlr")

            assert "crawlr.core" not in sys.modules
            assert "crawlr.models" not in sys.modules
            assert "crawlr.services" not in sys.modules
            assert "crawlr.nips" not in sys.modules
        finally:
            for name in [n for n in sys.modules if n.startswith("crawlr")]:
                del sys.modules[name]
            sys.modules.update(saved)

    def test_lazy_import_resolves_on_access(self) -> None:
        from crawlr import Crawler, Registry
        from crawlr.core.registry import Registry as DirectRegistry
        from crawlr.services.crawler.service import Crawler as DirectCrawler

        assert Registry is DirectRegistry
        assert Crawler is DirectCrawler

    def test_lazy_import_caches_after_first_access(self) -> None:
        import crawlr

        _ = crawlr.classify

        assert "classify" in vars(crawlr)

    def test_lazy_import_invalid_attribute(self) -> None:
        import crawlr

        with pytest.raises(AttributeError, match="no_such_thing"):
            _ = getattr(crawlr, "no_such_thing")  # noqa: B009

    def test_all_exports_are_in_lazy_imports(self) -> None:
        import crawlr

        assert set(crawlr.__all__) == set(crawlr._LAZY_IMPORTS)

    def test_version(self) -> None:
        import crawlr

        assert isinstance(crawlr.__version__, str)
