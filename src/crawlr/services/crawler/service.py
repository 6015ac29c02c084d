"""Crawler service for crawlr.

Recursively discovers Nostr relays by asking every reachable relay for its
NIP-65 relay list (kind 10002) and feeding each advertised ``r`` tag URL
back into the [Registry][crawlr.core.registry.Registry]:

```text
seeds --register--> Registry --snapshot_pending--> coordinator
   ^                                                   |
   |                                      semaphore(max_parallel)
   |                                                   v
   +------ register(child, depth + 1) <------ worker: fetch_relay_list()
                                              retry / backoff
                                              mark_crawled | mark_offline
```

The coordinator is the single admission point for new work. It drains the
frontier while slots are free, then blocks until a worker finishes or a
shutdown is requested; it never busy-polls. A crawl ends when a drain
dispatches nothing and no worker is outstanding, which is exactly when
[Registry.completed()][crawlr.core.registry.Registry.completed] holds.

With ``software.enabled``, a pass that reaches completion is followed by a
NIP-11 [software survey][crawlr.services.crawler.software] of the crawled
relays.

Note:
    Retries happen inside the worker that claimed the relay, so the relay
    stays ``in_flight`` during backoff and no other worker can pick it up.
    Cancellation abandons in-flight attempts and leaves every record as it
    is; interrupted relays are re-queued when the checkpoint is restored.

See Also:
    [CrawlerConfig][crawlr.services.crawler.CrawlerConfig]: Configuration
        model for concurrency, retries, fetch deadlines and checkpoints.
    [fetch_relay_list()][crawlr.utils.transport.fetch_relay_list]: The
        default fetch client.

Examples:
    ```python
    from crawlr.services import Crawler

    crawler = Crawler.from_yaml("config/crawler.yaml")

    async with crawler:
        await crawler.run_forever()
    ```
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, ClassVar, NamedTuple, Self

from crawlr.core.base_service import BaseService
from crawlr.core.exceptions import CheckpointError, FetchError
from crawlr.core.metrics import FETCH_DURATION_SECONDS
from crawlr.core.registry import Registry, RegistryStats
from crawlr.models.constants import DEFAULT_SEED, CrawlState, RelayCategory, ServiceName
from crawlr.utils.transport import fetch_relay_list

from .checkpoint import load_checkpoint, save_checkpoint
from .configs import CrawlerConfig
from .software import OFFLINE, group_rare, survey_software, write_software_counts
from .utils import parse_seed_file


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path
    from types import TracebackType

    from crawlr.core.logger import Logger
    from crawlr.models.relay import RelayRecord

    FetchFunc = Callable[..., Awaitable[list[str]]]


class CrawlResult(NamedTuple):
    """Outcome of one [crawl()][crawlr.services.crawler.Crawler.crawl] call.

    Attributes:
        dispatched: Relays handed to a worker.
        discovered: Relays registered for the first time during the crawl.
        stats: Registry counts when the crawl returned.
        completed: Whether the registry reached its fixed point.
        duration: Wall-clock seconds spent.
    """

    dispatched: int
    discovered: int
    stats: RegistryStats
    completed: bool
    duration: float


class Crawler(BaseService[CrawlerConfig]):
    """Relay list crawler.

    Args:
        registry: Registry to crawl into; a fresh one honouring
            ``config.max_depth`` is created when omitted.
        config: Service configuration.
        fetch: Coroutine function with the signature of
            [fetch_relay_list()][crawlr.utils.transport.fetch_relay_list];
            injectable for tests and alternative transports.

    See Also:
        [CrawlerConfig][crawlr.services.crawler.CrawlerConfig]: Configuration
            model for this service.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.CRAWLER
    CONFIG_CLASS: ClassVar[type[CrawlerConfig]] = CrawlerConfig

    def __init__(
        self,
        registry: Registry | None = None,
        config: CrawlerConfig | None = None,
        fetch: FetchFunc | None = None,
    ) -> None:
        super().__init__(config=config)
        self._config: CrawlerConfig
        self._registry = (
            registry if registry is not None else Registry(max_depth=self._config.max_depth)
        )
        self._fetch: FetchFunc = fetch if fetch is not None else fetch_relay_list
        self._surveyed = False

    @property
    def registry(self) -> Registry:
        return self._registry

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Self:
        await super().__aenter__()
        if self._config.checkpoint.enabled:
            self.restore_checkpoint()
        self.seed()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if self._config.checkpoint.enabled:
                try:
                    self.write_checkpoint()
                except CheckpointError as e:
                    self._logger.error("checkpoint_save_failed", error=str(e))
                    if exc_type is None:
                        raise
        finally:
            await super().__aexit__(exc_type, exc_val, exc_tb)

    def restore_checkpoint(self) -> int:
        """Load the previous run's rows into the registry.

        Returns:
            Number of records restored.

        Raises:
            CheckpointError: If a checkpoint file exists but is unreadable.
        """
        records = load_checkpoint(self._config.checkpoint.directory)
        restored = self._registry.restore(records)
        if restored:
            stats = self._registry.stats()
            self._logger.info(
                "checkpoint_restored",
                relays=restored,
                pending=stats.pending,
                offline=stats.offline,
                excluded=stats.excluded,
            )
        return restored

    def write_checkpoint(self) -> list[Path]:
        """Persist the full registry to the checkpoint directory."""
        return save_checkpoint(
            self._registry.records(),
            self._config.checkpoint.directory,
            partition_by_category=self._config.checkpoint.partition_by_category,
        )

    def seed(self) -> int:
        """Register the configured seeds.

        Seeds come from ``config.seeds`` followed by ``config.seed_file``.
        When neither yields anything and the registry is still empty,
        ``DEFAULT_SEED`` is used. Seeds already present (for example from a
        restored checkpoint) are left untouched.

        Returns:
            Number of seeds newly registered.
        """
        seeds = list(self._config.seeds)
        if self._config.seed_file:
            seeds.extend(parse_seed_file(self._config.seed_file))
        if not seeds and len(self._registry) == 0:
            seeds = [DEFAULT_SEED]

        added = 0
        for url in seeds:
            if url in self._registry:
                continue
            registration = self._registry.register(url)
            added += 1
            if registration.record.is_excluded:
                self._logger.warning(
                    "seed_excluded", url=url, category=registration.record.category
                )

        self._logger.info("seeds_registered", seeds=len(seeds), added=added)
        return added

    # -------------------------------------------------------------------------
    # Service Cycle
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """Execute one crawl pass and publish its results.

        Requests shutdown once the registry is complete and
        ``exit_on_complete`` is set, ending
        [run_forever()][crawlr.core.base_service.BaseService.run_forever].
        """
        stats = self._registry.stats()
        self._logger.info(
            "crawl_started",
            found=stats.found,
            pending=stats.pending,
            max_parallel=self._config.concurrency.max_parallel,
            max_retries=self._config.retry.max_retries,
        )

        result = await self.crawl()
        self._publish_stats(result.stats)

        self._logger.info(
            "crawl_finished",
            found=result.stats.found,
            crawled=result.stats.crawled,
            offline=result.stats.offline,
            excluded=result.stats.excluded,
            deferred=result.stats.deferred,
            remaining=result.stats.remaining,
            dispatched=result.dispatched,
            discovered=result.discovered,
            duration_s=round(result.duration, 3),
        )

        if result.completed and self._config.software.enabled:
            if result.dispatched or not self._surveyed:
                await self.run_software_survey()
                self._surveyed = True

        if result.completed and self._config.exit_on_complete:
            self._logger.info("crawl_complete", found=result.stats.found)
            self.request_shutdown()

    async def crawl(self) -> CrawlResult:
        """Crawl until the frontier is exhausted or shutdown is requested.

        Relays left ``in_flight`` by an earlier pass that was interrupted or
        aborted by a worker defect are returned to the frontier first.

        Returns:
            [CrawlResult][crawlr.services.crawler.CrawlResult] summarizing
            the pass.

        Raises:
            asyncio.CancelledError: Propagated after every worker has been
                cancelled.
        """
        released = self._registry.release_in_flight()
        if released:
            self._logger.info("in_flight_released", relays=released)

        semaphore = asyncio.Semaphore(self._config.concurrency.max_parallel)
        tasks: set[asyncio.Task[None]] = set()
        found_before = len(self._registry)
        dispatched = 0
        start = time.monotonic()

        try:
            while self.is_running:
                dispatched += await self._dispatch_pending(semaphore, tasks)
                if not tasks:
                    break
                await self._wait_for_progress(tasks)
        finally:
            if tasks:
                self._logger.info("crawl_interrupted", in_flight=len(tasks))
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)

        stats = self._registry.stats()
        return CrawlResult(
            dispatched=dispatched,
            discovered=stats.found - found_before,
            stats=stats,
            completed=self._registry.completed(),
            duration=time.monotonic() - start,
        )

    async def _dispatch_pending(
        self,
        semaphore: asyncio.Semaphore,
        tasks: set[asyncio.Task[None]],
    ) -> int:
        """Start a worker for each pending relay while slots are free."""
        dispatched = 0
        for record in self._registry.snapshot_pending():
            if semaphore.locked() or not self.is_running:
                break
            await semaphore.acquire()
            if not self._registry.mark_in_flight(record.url):
                semaphore.release()
                continue
            task = asyncio.create_task(
                self._crawl_relay(record, semaphore), name=f"crawl:{record.url}"
            )
            tasks.add(task)
            dispatched += 1

        if dispatched:
            self.set_gauge("in_flight", len(tasks))
        return dispatched

    async def _wait_for_progress(self, tasks: set[asyncio.Task[None]]) -> None:
        """Block until a worker finishes or shutdown is requested, then reap."""
        shutdown = asyncio.ensure_future(self._shutdown_event.wait())
        try:
            await asyncio.wait({*tasks, shutdown}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            shutdown.cancel()

        for task in [t for t in tasks if t.done()]:
            tasks.discard(task)
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                raise exc

    async def run_software_survey(self) -> Path:
        """Bucket crawled ``clear_online`` relays by NIP-11 software.

        Writes ``software_counts.csv`` to the checkpoint directory.

        Returns:
            Path of the written file.

        Raises:
            CheckpointError: If the file cannot be written.
        """
        survey = self._config.software
        urls = [
            r.url
            for r in self._registry.records()
            if r.category == RelayCategory.CLEAR_ONLINE and r.crawl_state == CrawlState.CRAWLED
        ]
        self._logger.info("software_survey_started", relays=len(urls))

        counts = await survey_software(
            urls,
            timeout=survey.timeout,
            max_parallel=self._config.concurrency.max_parallel,
        )
        grouped = group_rare(counts, survey.threshold)
        path = write_software_counts(grouped, self._config.checkpoint.directory)

        self._logger.info(
            "software_survey_finished",
            relays=len(urls),
            buckets=len(grouped),
            offline=counts[OFFLINE],
            path=str(path),
        )
        return path

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    async def _crawl_relay(self, record: RelayRecord, semaphore: asyncio.Semaphore) -> None:
        """Fetch one relay with retries, then record the outcome."""
        url = record.url
        log = self._logger.bind(url=url)
        max_retries = self._config.retry.max_retries
        fetch = self._config.fetch

        try:
            for attempt in range(1, max_retries + 1):
                if attempt > 1:
                    await asyncio.sleep(self._config.retry.backoff)

                self._registry.record_attempt(url)
                self.inc_counter("attempts")
                started = time.monotonic()

                try:
                    children = await self._fetch(
                        url,
                        fetch.timeout,
                        connect_timeout=fetch.connect_timeout,
                        limit=fetch.limit,
                        subscription_id=fetch.subscription_id,
                    )
                except FetchError as e:
                    self._attempt_failed(log, attempt, e, time.monotonic() - started)
                    continue
                except Exception as e:  # Intentionally broad: one relay never aborts the crawl
                    log.warning("fetch_unexpected_error", error=str(e), error_type=type(e).__name__)
                    self._attempt_failed(log, attempt, e, time.monotonic() - started)
                    continue

                self._observe_fetch("success", time.monotonic() - started)
                new = self._register_children(record, children)
                self._registry.mark_crawled(url)
                self.inc_counter("relays_crawled")
                log.info("relay_crawled", attempt=attempt, children=len(children), new=new)
                return

            self._registry.mark_offline(url)
            self.inc_counter("relays_offline")
            log.info("relay_offline", attempts=max_retries)
        finally:
            semaphore.release()

    def _attempt_failed(self, log: Logger, attempt: int, error: Exception, duration: float) -> None:
        self._observe_fetch(type(error).__name__, duration)
        self.inc_counter("attempts_failed")
        log.debug(
            "attempt_failed",
            attempt=attempt,
            max_retries=self._config.retry.max_retries,
            error=str(error),
            error_type=type(error).__name__,
        )

    def _register_children(self, parent: RelayRecord, children: list[str]) -> int:
        """Register every advertised URL; return how many were new."""
        new = 0
        for child in children:
            registration = self._registry.register(
                child, discovered_by=parent.url, depth=parent.depth + 1
            )
            if registration.is_new:
                new += 1
        return new

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def _observe_fetch(self, outcome: str, duration: float) -> None:
        if self._config.metrics.enabled:
            FETCH_DURATION_SECONDS.labels(outcome=outcome).observe(duration)

    def _publish_stats(self, stats: RegistryStats) -> None:
        self.set_gauge("found", stats.found)
        self.set_gauge("frontier", stats.pending)
        self.set_gauge("in_flight", stats.in_flight)
        self.set_gauge("crawled", stats.crawled)
        self.set_gauge("offline", stats.offline)
        self.set_gauge("excluded", stats.excluded)
        self.set_gauge("deferred", stats.deferred)
