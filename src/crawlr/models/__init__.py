"""Pure data layer: relay classification and immutable crawl records.

Zero I/O, depends only on the standard library and ``rfc3986``.

Attributes:
    classify: Total URL classifier returning a
        [RelayCategory][crawlr.models.constants.RelayCategory].
    normalize_url: Canonical registry key for a relay URL.
    RelayRecord: Frozen per-relay record held by the
        [Registry][crawlr.core.registry.Registry].
"""

from .constants import (
    DEFAULT_SEED,
    EXCLUDED_CATEGORIES,
    SEED,
    TERMINAL_STATES,
    CrawlState,
    EventKind,
    RelayCategory,
    ServiceName,
)
from .relay import RelayRecord, RelayRow, classify, normalize_url


__all__ = [
    "DEFAULT_SEED",
    "EXCLUDED_CATEGORIES",
    "SEED",
    "TERMINAL_STATES",
    "CrawlState",
    "EventKind",
    "RelayCategory",
    "RelayRecord",
    "RelayRow",
    "ServiceName",
    "classify",
    "normalize_url",
]
