r"""crawlr -- Nostr relay discovery crawler.

Starting from one or more seed relays, crawlr asks every reachable relay
for its NIP-65 relay list (kind 10002), registers every advertised relay
URL and keeps going until every discovered relay has been crawled, marked
offline, or excluded by category.

Imports flow strictly downward:

```text
              services         Crawler, checkpoint, seeding
             /   |   \
          core  nips  utils    Registry, logging, config, metrics; codec; transport
             \   |   /
              models           Classification and frozen records (zero I/O)
```

Note:
    Top-level imports (``from crawlr import Crawler``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("crawlr")

__all__ = [
    "BaseService",
    "CrawlResult",
    "CrawlState",
    "Crawler",
    "CrawlerConfig",
    "Logger",
    "Registry",
    "RelayCategory",
    "RelayRecord",
    "classify",
    "fetch_relay_list",
    "normalize_url",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("crawlr.core", "BaseService"),
    "Logger": ("crawlr.core", "Logger"),
    "Registry": ("crawlr.core", "Registry"),
    "CrawlState": ("crawlr.models", "CrawlState"),
    "RelayCategory": ("crawlr.models", "RelayCategory"),
    "RelayRecord": ("crawlr.models", "RelayRecord"),
    "classify": ("crawlr.models", "classify"),
    "normalize_url": ("crawlr.models", "normalize_url"),
    "fetch_relay_list": ("crawlr.utils", "fetch_relay_list"),
    "CrawlResult": ("crawlr.services", "CrawlResult"),
    "Crawler": ("crawlr.services", "Crawler"),
    "CrawlerConfig": ("crawlr.services", "CrawlerConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'crawlr' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
