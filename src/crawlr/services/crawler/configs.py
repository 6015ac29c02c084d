"""Crawler service configuration models.

See Also:
    [Crawler][crawlr.services.crawler.Crawler]: The service class
        that consumes these configurations.
    [BaseServiceConfig][crawlr.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures``,
        and ``metrics`` fields.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from crawlr.core.base_service import BaseServiceConfig
from crawlr.nips.nip11 import DEFAULT_INFO_TIMEOUT
from crawlr.utils.transport import DEFAULT_CONNECT_TIMEOUT, DEFAULT_TIMEOUT

from .software import DEFAULT_THRESHOLD


class ConcurrencyConfig(BaseModel):
    """Admission limit for simultaneous fetches.

    See Also:
        [CrawlerConfig][crawlr.services.crawler.CrawlerConfig]: Parent
            config that embeds this model.
    """

    max_parallel: int = Field(
        default=20, ge=1, le=1000, description="Maximum relays fetched at the same time"
    )


class RetryConfig(BaseModel):
    """Per-relay retry policy.

    A relay is attempted at most ``max_retries`` times, with ``backoff``
    seconds between consecutive attempts, before it is marked offline.
    """

    max_retries: int = Field(default=2, ge=1, le=20, description="Attempts per relay")
    backoff: float = Field(
        default=3.0, ge=0.0, le=300.0, description="Seconds between consecutive attempts"
    )


class FetchConfig(BaseModel):
    """Fetch client deadlines and request shape."""

    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        ge=0.1,
        le=120.0,
        description="Seconds to wait for the end of stored events",
    )
    connect_timeout: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT,
        ge=0.1,
        le=60.0,
        description="Seconds allowed for dial, TLS and WebSocket handshake",
    )
    limit: int = Field(default=100, ge=1, le=5000, description="REQ filter limit")
    subscription_id: str = Field(default="crawlr", min_length=1, max_length=64)


class CheckpointConfig(BaseModel):
    """CSV checkpoint persistence.

    See Also:
        [load_checkpoint()][crawlr.services.crawler.checkpoint.load_checkpoint]
        and [save_checkpoint()][crawlr.services.crawler.checkpoint.save_checkpoint].
    """

    enabled: bool = Field(default=True, description="Load on start and save on exit")
    directory: str = Field(default="logs", description="Directory holding the CSV files")
    partition_by_category: bool = Field(
        default=True,
        description="Write one <category>_relays.csv per category instead of relays.csv",
    )


class SoftwareSurveyConfig(BaseModel):
    """NIP-11 software survey run after a complete crawl.

    See Also:
        [crawlr.services.crawler.software][crawlr.services.crawler.software]:
            Survey, grouping and ``software_counts.csv`` output.
    """

    enabled: bool = Field(default=False, description="Survey relay software once complete")
    timeout: float = Field(
        default=DEFAULT_INFO_TIMEOUT, ge=0.1, le=120.0, description="NIP-11 request timeout"
    )
    threshold: int = Field(
        default=DEFAULT_THRESHOLD, ge=1, description="Buckets below this count become Other"
    )


class CrawlerConfig(BaseServiceConfig):
    """Crawler service configuration.

    See Also:
        [Crawler][crawlr.services.crawler.Crawler]: The service class
            that consumes this configuration.
        [BaseServiceConfig][crawlr.core.base_service.BaseServiceConfig]:
            Base class providing ``interval`` and ``metrics`` fields.
    """

    seeds: list[str] = Field(default_factory=list, description="Seed relay URLs")
    seed_file: str | None = Field(default=None, description="File with one seed URL per line")
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    checkpoint: CheckpointConfig = Field(default_factory=CheckpointConfig)
    software: SoftwareSurveyConfig = Field(default_factory=SoftwareSurveyConfig)
    max_depth: int | None = Field(
        default=None, ge=0, description="Hops from a seed beyond which relays are deferred"
    )
    exit_on_complete: bool = Field(
        default=True, description="Stop run_forever() once the registry is complete"
    )

    @field_validator("seeds")
    @classmethod
    def _strip_seeds(cls, v: list[str]) -> list[str]:
        return [s.strip() for s in v if s.strip()]
