"""Crawler service package.

Re-exports all public symbols::

    from crawlr.services.crawler import Crawler, CrawlerConfig
"""

from .configs import (
    CheckpointConfig,
    ConcurrencyConfig,
    CrawlerConfig,
    FetchConfig,
    RetryConfig,
    SoftwareSurveyConfig,
)
from .service import Crawler, CrawlResult


__all__ = [
    "CheckpointConfig",
    "ConcurrencyConfig",
    "CrawlResult",
    "Crawler",
    "CrawlerConfig",
    "FetchConfig",
    "RetryConfig",
    "SoftwareSurveyConfig",
]
