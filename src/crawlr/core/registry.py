"""
Concurrency-safe registry of every relay the crawl has seen.

The [Registry][crawlr.core.registry.Registry] is the only shared mutable
state of a crawl. It maps each normalized relay URL to exactly one frozen
[RelayRecord][crawlr.models.relay.RelayRecord] and exposes only atomic,
invariant-preserving operations:

```text
register()        first sight: classify + create, later: discovery_count += 1
mark_in_flight()  pending -> in_flight (exclusive, at most one owner)
mark_crawled()    in_flight/pending -> crawled            (idempotent)
mark_offline()    in_flight/pending -> offline             (idempotent)
release_in_flight() in_flight -> pending, between crawl passes
snapshot_pending()  {category = clear_online and state = pending}
completed()       every record is terminal or excluded
```

Every public method is synchronous and holds a single ``threading.Lock``
for its whole critical section. There is no ``await`` inside, so the lock
never spans a suspension point and the registry is safe both from many
asyncio tasks and from worker threads.

Counts are never kept in separate counters: [stats()][crawlr.core.registry.Registry.stats]
derives them from the records on demand.

Examples:
    ```python
    registry = Registry()
    registry.register("wss://nos.lol")
    registry.mark_in_flight("wss://nos.lol")        # True
    registry.register("wss://relay.damus.io", discovered_by="wss://nos.lol", depth=1)
    registry.mark_crawled("wss://nos.lol")
    registry.completed()                            # False, damus is pending
    ```
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import replace
from typing import TYPE_CHECKING, NamedTuple

from crawlr.models.constants import (
    EXCLUDED_CATEGORIES,
    SEED,
    CrawlState,
    RelayCategory,
)
from crawlr.models.relay import RelayRecord, classify, normalize_url


if TYPE_CHECKING:
    from collections.abc import Iterable


_ACTIVE_STATES = frozenset({CrawlState.PENDING, CrawlState.IN_FLIGHT})


class Registration(NamedTuple):
    """Result of [Registry.register()][crawlr.core.registry.Registry.register]."""

    is_new: bool
    record: RelayRecord


class RegistryStats(NamedTuple):
    """Point-in-time counts derived from the registry records.

    Attributes:
        found: Total distinct relay URLs registered.
        pending: Active frontier size.
        in_flight: Relays currently owned by a worker.
        crawled: Relays whose relay list was fetched.
        offline: Relays that exhausted their retries.
        deferred: Relays first seen beyond the depth bound.
        excluded: Relays in an excluded category.
        categories: Count per category value.
    """

    found: int
    pending: int
    in_flight: int
    crawled: int
    offline: int
    deferred: int
    excluded: int
    categories: dict[str, int]

    @property
    def remaining(self) -> int:
        """Relays that still need work (pending plus in flight)."""
        return self.pending + self.in_flight


class Registry:
    """Store of all discovered relay records.

    Args:
        max_depth: Optional depth bound. A clear relay first registered
            with ``depth > max_depth`` enters the ``deferred`` state instead
            of the frontier. ``None`` disables the bound.
    """

    def __init__(self, max_depth: int | None = None) -> None:
        if max_depth is not None and max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")
        self._max_depth = max_depth
        self._lock = threading.Lock()
        self._records: dict[str, RelayRecord] = {}

    @property
    def max_depth(self) -> int | None:
        return self._max_depth

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, url: object) -> bool:
        if not isinstance(url, str):
            return False
        key = normalize_url(url)
        with self._lock:
            return key in self._records

    def get(self, url: str) -> RelayRecord | None:
        """Return the current record for *url*, or ``None`` if unknown."""
        key = normalize_url(url)
        with self._lock:
            return self._records.get(key)

    def records(self) -> list[RelayRecord]:
        """Return a consistent snapshot of every record."""
        with self._lock:
            return list(self._records.values())

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def register(self, url: str, discovered_by: str = SEED, depth: int = 0) -> Registration:
        """Record one occurrence of *url* in a relay list (or the seed input).

        The first caller for a URL creates its record; every later caller,
        including ones that lost a creation race, only increments
        ``discovery_count``. Category and depth are fixed at creation.

        Args:
            url: Raw URL as advertised.
            discovered_by: Normalized URL of the advertising relay, or
                ``"seed"``.
            depth: Hops from a seed along this discovery edge.

        Returns:
            [Registration][crawlr.core.registry.Registration] with
            ``is_new`` and the record after the update.
        """
        key = normalize_url(url) if isinstance(url, str) else str(url)
        # classify() is pure; kept outside the lock.
        category = classify(key)

        with self._lock:
            existing = self._records.get(key)
            if existing is not None:
                updated = replace(existing, discovery_count=existing.discovery_count + 1)
                self._records[key] = updated
                return Registration(is_new=False, record=updated)

            if category in EXCLUDED_CATEGORIES:
                state = CrawlState.EXCLUDED
            else:
                state = self._initial_state(depth)

            record = RelayRecord(
                url=key,
                category=category,
                crawl_state=state,
                discovered_by=discovered_by,
                depth=depth,
            )
            self._records[key] = record
            return Registration(is_new=True, record=record)

    def restore(self, records: Iterable[RelayRecord]) -> int:
        """Load records from a previous run's checkpoint.

        Clear relays that did not end offline (crawled, deferred, pending or
        interrupted in flight) are re-queued with their stored depth: as
        ``pending`` when within ``max_depth``, otherwise as ``deferred``, so the
        depth bound holds across resumed runs. Everything else keeps its
        stored state. URLs already present are left untouched.

        Returns:
            Number of records restored.
        """
        restored = 0
        with self._lock:
            for record in records:
                if record.url in self._records:
                    continue
                if record.category in EXCLUDED_CATEGORIES:
                    record = replace(record, crawl_state=CrawlState.EXCLUDED, attempts=0)
                elif (
                    record.category == RelayCategory.CLEAR_ONLINE
                    and record.crawl_state != CrawlState.OFFLINE
                ):
                    record = replace(
                        record, crawl_state=self._initial_state(record.depth), attempts=0
                    )
                else:
                    record = replace(
                        record,
                        category=RelayCategory.CLEAR_OFFLINE,
                        crawl_state=CrawlState.OFFLINE,
                        attempts=0,
                    )
                self._records[record.url] = record
                restored += 1
        return restored

    def _initial_state(self, depth: int) -> CrawlState:
        if self._max_depth is not None and depth > self._max_depth:
            return CrawlState.DEFERRED
        return CrawlState.PENDING

    # -------------------------------------------------------------------------
    # Crawl State Transitions
    # -------------------------------------------------------------------------

    def mark_in_flight(self, url: str) -> bool:
        """Claim a pending relay for one worker.

        Returns:
            ``True`` if the caller now owns the relay, ``False`` if it was
            not pending (already claimed, finished, excluded or unknown).
        """
        key = normalize_url(url)
        with self._lock:
            record = self._records.get(key)
            if (
                record is None
                or record.category != RelayCategory.CLEAR_ONLINE
                or record.crawl_state != CrawlState.PENDING
            ):
                return False
            self._records[key] = replace(record, crawl_state=CrawlState.IN_FLIGHT)
            return True

    def release_in_flight(self) -> int:
        """Return every ``in_flight`` relay to ``pending``.

        Only valid while no worker owns a relay, i.e. between crawl passes.
        Records orphaned by cancelled workers become crawlable again.

        Returns:
            Number of relays released.
        """
        released = 0
        with self._lock:
            for key, record in self._records.items():
                if record.crawl_state == CrawlState.IN_FLIGHT:
                    self._records[key] = replace(record, crawl_state=CrawlState.PENDING)
                    released += 1
        return released

    def record_attempt(self, url: str) -> int:
        """Increment and return the attempt counter of *url*.

        Raises:
            KeyError: If *url* was never registered.
        """
        key = normalize_url(url)
        with self._lock:
            record = self._records[key]
            updated = replace(record, attempts=record.attempts + 1)
            self._records[key] = updated
            return updated.attempts

    def mark_crawled(self, url: str) -> bool:
        """Move *url* to ``crawled``.

        Returns:
            ``True`` if the state changed, ``False`` for a redundant call.

        Raises:
            KeyError: If *url* was never registered.
        """
        key = normalize_url(url)
        with self._lock:
            record = self._records[key]
            if record.crawl_state not in _ACTIVE_STATES:
                return False
            self._records[key] = replace(record, crawl_state=CrawlState.CRAWLED)
            return True

    def mark_offline(self, url: str) -> bool:
        """Move *url* to ``offline`` and its category to ``clear_offline``.

        Returns:
            ``True`` if the state changed, ``False`` for a redundant call.

        Raises:
            KeyError: If *url* was never registered.
        """
        key = normalize_url(url)
        with self._lock:
            record = self._records[key]
            if record.crawl_state not in _ACTIVE_STATES:
                return False
            self._records[key] = replace(
                record,
                category=RelayCategory.CLEAR_OFFLINE,
                crawl_state=CrawlState.OFFLINE,
            )
            return True

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def snapshot_pending(self) -> list[RelayRecord]:
        """Return the active frontier as of this instant."""
        with self._lock:
            return [
                r
                for r in self._records.values()
                if r.category == RelayCategory.CLEAR_ONLINE and r.crawl_state == CrawlState.PENDING
            ]

    def completed(self) -> bool:
        """Whether the crawl has reached a fixed point.

        True iff every relay is crawled, offline, deferred, or in an
        excluded category. An empty registry is complete.
        """
        with self._lock:
            return all(r.is_terminal for r in self._records.values())

    def stats(self) -> RegistryStats:
        """Derive current counts from the records."""
        with self._lock:
            states = Counter(r.crawl_state for r in self._records.values())
            categories = Counter(r.category.value for r in self._records.values())
            total = len(self._records)

        return RegistryStats(
            found=total,
            pending=states[CrawlState.PENDING],
            in_flight=states[CrawlState.IN_FLIGHT],
            crawled=states[CrawlState.CRAWLED],
            offline=states[CrawlState.OFFLINE],
            deferred=states[CrawlState.DEFERRED],
            excluded=states[CrawlState.EXCLUDED],
            categories={c.value: categories[c.value] for c in RelayCategory},
        )
