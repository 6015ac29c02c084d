"""Services are the top layer of the crawlr DAG.

They depend on [crawlr.core][crawlr.core], [crawlr.nips][crawlr.nips],
[crawlr.utils][crawlr.utils] and [crawlr.models][crawlr.models]. Each
service extends [BaseService][crawlr.core.base_service.BaseService] and
implements ``async def run()`` for one cycle of work.

Attributes:
    Crawler: Bounded-concurrency NIP-65 relay list crawler with retry,
        backoff, optional depth bound and CSV checkpointing.

Examples:
    ```python
    from crawlr.services import Crawler

    async with Crawler() as crawler:
        await crawler.run()
    ```
"""

from .crawler import (
    Crawler,
    CrawlerConfig,
    CrawlResult,
)


__all__ = [
    "CrawlResult",
    "Crawler",
    "CrawlerConfig",
]
