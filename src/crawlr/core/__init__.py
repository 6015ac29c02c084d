"""Core layer providing the foundation for the crawler service.

Depends only on ``crawlr.models`` and is depended upon by
``crawlr.services``.

Attributes:
    Registry: Lock-protected store of every relay record and the single
        source of truth for crawl progress.
        See [Registry][crawlr.core.registry.Registry].
    BaseService: Abstract generic base class with lifecycle management
        ([run()][crawlr.core.base_service.BaseService.run] /
        [run_forever()][crawlr.core.base_service.BaseService.run_forever] /
        shutdown), factory methods and Prometheus metrics integration.
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][crawlr.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
        See [MetricsServer][crawlr.core.metrics.MetricsServer].
    YAML: Safe YAML loading with ``yaml.safe_load()``.
        See [load_yaml()][crawlr.core.yaml.load_yaml].
"""

from .base_service import (
    BaseService,
    BaseServiceConfig,
    ConfigT,
)
from .exceptions import (
    CheckpointError,
    ConfigurationError,
    ConnectivityError,
    CrawlrError,
    DecodeError,
    FetchError,
    ProtocolError,
    RelayConnectError,
    RelayTimeoutError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    FETCH_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .registry import Registration, Registry, RegistryStats
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "FETCH_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "CheckpointError",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "CrawlrError",
    "DecodeError",
    "FetchError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "ProtocolError",
    "Registration",
    "Registry",
    "RegistryStats",
    "RelayConnectError",
    "RelayTimeoutError",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
