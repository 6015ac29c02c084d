"""CLI entry point for the crawlr relay crawler.

Runs the [Crawler][crawlr.services.crawler.Crawler] either for a single pass
(``--once``) or continuously with a Prometheus metrics server, re-polling
every ``interval`` seconds until the crawl completes. SIGINT/SIGTERM stop
dispatch, cancel in-flight fetches and still write the checkpoint.

Exit codes: ``0`` success, ``1`` failure, ``130`` interrupted by a signal.

Examples:
    ```bash
    python -m crawlr --once
    python -m crawlr --config config/crawler.yaml --log-level DEBUG
    python -m crawlr --seed wss://relay.damus.io --concurrency 50 --max-depth 3
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from crawlr.core import start_metrics_server
from crawlr.core.exceptions import CrawlrError
from crawlr.core.logger import Logger, StructuredFormatter
from crawlr.core.yaml import load_yaml
from crawlr.services.crawler import Crawler


CONFIG_BASE = Path("config")
DEFAULT_CONFIG = CONFIG_BASE / "crawler.yaml"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

logger = Logger("cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the crawler."""
    parser = argparse.ArgumentParser(
        prog="crawlr",
        description="Nostr relay list crawler",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Crawler config path (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single crawl pass and exit (default: run until complete)",
    )

    overrides = parser.add_argument_group("overrides", "Take precedence over the config file")
    overrides.add_argument("--concurrency", type=int, help="Maximum parallel fetches")
    overrides.add_argument("--max-retries", type=int, help="Attempts per relay")
    overrides.add_argument("--timeout", type=float, help="Per-attempt deadline in seconds")
    overrides.add_argument("--backoff", type=float, help="Seconds between attempts")
    overrides.add_argument(
        "--max-depth",
        type=int,
        help="Hops from a seed to crawl; restored relays keep their depth",
    )
    overrides.add_argument(
        "--seed",
        action="append",
        dest="seeds",
        metavar="URL",
        help="Seed relay URL (repeatable, added to configured seeds)",
    )
    overrides.add_argument("--checkpoint-dir", help="Checkpoint directory")
    overrides.add_argument(
        "--software-survey",
        action="store_true",
        default=None,
        help="Write software_counts.csv from NIP-11 documents once the crawl completes",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install ``StructuredFormatter`` on the root handler.

    Unifies output from ``Logger`` (with ``structured_kv`` extra) and the
    plain ``logging.getLogger()`` calls in the utils and checkpoint layers.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


def apply_overrides(config: dict[str, Any], args: argparse.Namespace) -> dict[str, Any]:
    """Merge CLI overrides into the parsed config mapping (in place)."""
    nested = (
        ("concurrency", "max_parallel", args.concurrency),
        ("retry", "max_retries", args.max_retries),
        ("retry", "backoff", args.backoff),
        ("fetch", "timeout", args.timeout),
        ("checkpoint", "directory", args.checkpoint_dir),
        ("software", "enabled", args.software_survey),
    )
    for section, key, value in nested:
        if value is not None:
            config.setdefault(section, {})[key] = value

    if args.max_depth is not None:
        config["max_depth"] = args.max_depth
    if args.seeds:
        config["seeds"] = [*config.get("seeds", []), *args.seeds]
    return config


def _log_summary(crawler: Crawler) -> None:
    stats = crawler.registry.stats()
    logger.info(
        "crawl_summary",
        found=stats.found,
        crawled=stats.crawled,
        offline=stats.offline,
        remaining=stats.remaining,
        deferred=stats.deferred,
        **stats.categories,
    )


async def run_crawler(crawler: Crawler, *, once: bool) -> int:
    """Run the crawler in one-shot or continuous mode.

    Returns:
        Exit code.
    """
    interrupted = False

    def handle_signal(sig: signal.Signals) -> None:
        nonlocal interrupted
        interrupted = True
        logger.info("shutdown_signal", signal=sig.name)
        crawler.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    metrics_config = crawler.config.metrics
    metrics_server = None if once else await start_metrics_server(metrics_config)
    if metrics_server is not None and metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    try:
        async with crawler:
            if once:
                await crawler.run()
            else:
                await crawler.run_forever()
        _log_summary(crawler)
        return EXIT_INTERRUPTED if interrupted else EXIT_OK
    except Exception as e:  # Intentionally broad: CLI error boundary
        logger.error("crawler_failed", error=str(e), error_type=type(e).__name__)
        return EXIT_FAILURE
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        if metrics_server is not None:
            await metrics_server.stop()
            if metrics_config.enabled:
                logger.info("metrics_server_stopped")


async def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point: parse args, build the crawler and run it."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        service_dict = apply_overrides(_load_yaml_dict(args.config), args)
        crawler = Crawler.from_dict(service_dict)
    except (CrawlrError, ValidationError) as e:
        logger.error("config_invalid", path=str(args.config), error=str(e))
        return EXIT_FAILURE

    try:
        return await run_crawler(crawler, once=args.once)
    except KeyboardInterrupt:
        logger.info("interrupted")
        return EXIT_INTERRUPTED


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
