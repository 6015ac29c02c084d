"""Shared constants for the models layer.

Defines enumerations and sentinel values used across the registry, the
fetch client and the crawler service. Placing them here avoids circular
dependencies between the models and utils layers.

See Also:
    [crawlr.models.relay][]: Uses [RelayCategory][crawlr.models.constants.RelayCategory]
        to classify relay URLs.
    [crawlr.core.registry][]: Drives [CrawlState][crawlr.models.constants.CrawlState]
        transitions for every registered relay.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Final


class RelayCategory(StrEnum):
    """Category assigned to a relay URL when it is first registered.

    The category is computed once by
    [classify()][crawlr.models.relay.classify] and never re-evaluated,
    with one exception: a ``CLEAR_ONLINE`` relay becomes ``CLEAR_OFFLINE``
    once its fetch retries are exhausted.

    Attributes:
        CLEAR_ONLINE: Public relay eligible for crawling.
        CLEAR_OFFLINE: Public relay that failed every fetch attempt.
        CLEAR_API: Public URL with a path (filtered/API endpoint), excluded.
        ONION: Tor hidden service (``.onion``), excluded.
        LOCAL: ``.local`` host or private/reserved IP address, excluded.
        MALFORMED: Not a syntactically valid ``ws``/``wss`` URL, excluded.

    Examples:
        ```python
        classify("wss://relay.damus.io")       # RelayCategory.CLEAR_ONLINE
        classify("wss://relay.example.com/x")  # RelayCategory.CLEAR_API
        classify("ws://192.168.1.5")           # RelayCategory.LOCAL
        ```
    """

    CLEAR_ONLINE = "clear_online"
    CLEAR_OFFLINE = "clear_offline"
    CLEAR_API = "clear_api"
    ONION = "onion"
    LOCAL = "local"
    MALFORMED = "malformed"


# Categories that are assigned at registration and never scheduled
EXCLUDED_CATEGORIES: Final[frozenset[RelayCategory]] = frozenset(
    {
        RelayCategory.CLEAR_API,
        RelayCategory.ONION,
        RelayCategory.LOCAL,
        RelayCategory.MALFORMED,
    }
)


class CrawlState(StrEnum):
    """Crawl lifecycle state of a registered relay.

    ```text
    pending -> in_flight -> crawled
                         -> offline   (after max retries)
    excluded                          (excluded categories, terminal)
    deferred                          (beyond the depth bound, terminal)
    ```

    Attributes:
        PENDING: Waiting in the frontier to be dispatched.
        IN_FLIGHT: A worker currently owns the relay (attempts and backoff).
        CRAWLED: A fetch succeeded and its children were registered.
        OFFLINE: Every attempt failed.
        EXCLUDED: Category is never crawled.
        DEFERRED: First seen beyond ``max_depth``; re-queued on resume.
    """

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    CRAWLED = "crawled"
    OFFLINE = "offline"
    EXCLUDED = "excluded"
    DEFERRED = "deferred"


# States that satisfy the completion predicate
TERMINAL_STATES: Final[frozenset[CrawlState]] = frozenset(
    {
        CrawlState.CRAWLED,
        CrawlState.OFFLINE,
        CrawlState.EXCLUDED,
        CrawlState.DEFERRED,
    }
)


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics."""

    CRAWLER = "crawler"


class EventKind(IntEnum):
    """Nostr event kinds consumed by the crawler.

    Attributes:
        RELAY_LIST: Kind 10002 -- NIP-65 relay list metadata.
    """

    RELAY_LIST = 10_002


SEED: Final[str] = "seed"
"""``discovered_by`` sentinel for relays that came from the seed input."""

DEFAULT_SEED: Final[str] = "wss://nos.lol"
"""Fallback seed used when no seeds are configured and no checkpoint exists."""
