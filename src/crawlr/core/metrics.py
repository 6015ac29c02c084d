"""
Prometheus metrics for the crawler and their HTTP exposition.

Metric objects are module-level singletons shared by every service.
[BaseService.run_forever()][crawlr.core.base_service.BaseService.run_forever]
records cycle counts and durations; the crawler adds frontier gauges via
``set_gauge()``/``inc_counter()`` and observes per-attempt latency in
``FETCH_DURATION_SECONDS``.

Architecture:
    SERVICE_INFO:            Static metadata set once at startup.
    SERVICE_GAUGE:           Point-in-time values (frontier, in_flight, ...).
    SERVICE_COUNTER:         Cumulative totals (attempts, failures, ...).
    CYCLE_DURATION_SECONDS:  Histogram of full crawl cycle durations.
    FETCH_DURATION_SECONDS:  Histogram of single fetch attempts by outcome.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True. Set ``host`` to
    ``"0.0.0.0"`` in containers to allow external scraping.
    """

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


SERVICE_INFO = Info(
    "crawlr_service",
    "Service information and metadata",
)

CYCLE_DURATION_SECONDS = Histogram(
    "crawlr_cycle_duration_seconds",
    "Duration of a full crawl cycle in seconds",
    ["service"],
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600, 7200),
)

FETCH_DURATION_SECONDS = Histogram(
    "crawlr_fetch_duration_seconds",
    "Duration of a single relay-list fetch attempt in seconds",
    ["outcome"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

# Labels used by the crawler:
#   gauge:   frontier, in_flight, crawled, offline, excluded, deferred, found
#   counter: attempts, attempts_failed, relays_crawled, relays_offline,
#            cycles_success, cycles_failed, errors_{type}
SERVICE_GAUGE = Gauge(
    "crawlr_service_gauge",
    "Service gauge values (point-in-time state)",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "crawlr_service_counter",
    "Service counter values (cumulative totals)",
    ["service", "name"],
)


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... crawl ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Bind the endpoint; no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self._config.host, self._config.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner

    async def stop(self) -> None:
        """Release the port. Idempotent."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a metrics server; the caller must ``stop()`` it."""
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
