"""
Pytest configuration and shared fixtures for crawlr tests.

Provides:
- Logging configuration
- Registry and crawler configuration fixtures
- FakeRelayNetwork: scripted in-memory replacement for fetch_relay_list
- Signed NIP-65 relay list events built with nostr-sdk
- InfoServer: local NIP-11 HTTP endpoint
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path

import pytest
from aiohttp import test_utils, web
from nostr_sdk import Event, EventBuilder, Keys, Kind, Tag

from crawlr.core.exceptions import RelayConnectError
from crawlr.core.registry import Registry
from crawlr.services.crawler import (
    CheckpointConfig,
    ConcurrencyConfig,
    CrawlerConfig,
    FetchConfig,
    RetryConfig,
)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Fake Relay Network
# ============================================================================


class FakeRelayNetwork:
    """Callable with the signature of ``fetch_relay_list`` backed by a dict.

    Args:
        relay_lists: Normalized relay URL -> URLs it advertises. URLs not in
            the mapping are unreachable.
        failures: Relay URL -> number of failed attempts before it answers
            (``math.inf`` for a relay that never answers).
        delay: Seconds every call takes before answering.
    """

    def __init__(
        self,
        relay_lists: dict[str, list[str]] | None = None,
        failures: dict[str, float] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.relay_lists = dict(relay_lists or {})
        self.failures = dict(failures or {})
        self.delay = delay
        self.calls: list[str] = []
        self.call_times: dict[str, list[float]] = {}
        self.active = 0
        self.max_active = 0

    async def __call__(
        self,
        url: str,
        timeout: float,
        *,
        connect_timeout: float,
        limit: int,
        subscription_id: str,
    ) -> list[str]:
        self.calls.append(url)
        self.call_times.setdefault(url, []).append(time.monotonic())
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            remaining = self.failures.get(url, 0)
            if remaining:
                if not math.isinf(remaining):
                    self.failures[url] = remaining - 1
                raise RelayConnectError("connection refused", url)
            if url not in self.relay_lists:
                raise RelayConnectError("connection refused", url)
            return list(self.relay_lists[url])
        finally:
            self.active -= 1

    def count(self, url: str) -> int:
        return self.calls.count(url)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def registry() -> Registry:
    """Empty registry without a depth bound."""
    return Registry()


@pytest.fixture
def checkpoint_dir(tmp_path: Path) -> Path:
    return tmp_path / "logs"


@pytest.fixture
def crawler_config(checkpoint_dir: Path) -> CrawlerConfig:
    """Fast crawler config: no backoff, no checkpoint, small pool."""
    return CrawlerConfig(
        concurrency=ConcurrencyConfig(max_parallel=4),
        retry=RetryConfig(max_retries=2, backoff=0.0),
        fetch=FetchConfig(timeout=1.0, connect_timeout=1.0),
        checkpoint=CheckpointConfig(enabled=False, directory=str(checkpoint_dir)),
    )


@pytest.fixture
def fake_network() -> type[FakeRelayNetwork]:
    """The FakeRelayNetwork class, for building scripted relay graphs."""
    return FakeRelayNetwork


# ============================================================================
# Nostr Events
# ============================================================================


@pytest.fixture(scope="session")
def nostr_keys() -> Keys:
    return Keys.generate()


@pytest.fixture
def make_relay_list(nostr_keys: Keys) -> Callable[..., Event]:
    """Build signed events; by default one ``["r", url]`` tag per URL."""

    def _make(*urls: str, kind: int = 10002, tags: list[list[str]] | None = None) -> Event:
        values = tags if tags is not None else [["r", url] for url in urls]
        builder = EventBuilder(Kind(kind), "").tags([Tag.parse(v) for v in values])
        return builder.sign_with_keys(nostr_keys)

    return _make


# ============================================================================
# NIP-11 Information Server
# ============================================================================


class InfoServer:
    """Local HTTP server answering NIP-11 requests per path.

    Args:
        routes: Request path -> ``(status, body)``. Dict bodies are sent as
            JSON; unknown paths answer 404.
    """

    def __init__(self, routes: dict[str, tuple[int, object]]) -> None:
        self.routes = routes
        self.requests: list[web.Request] = []
        self.server: test_utils.TestServer | None = None

    async def handler(self, request: web.Request) -> web.Response:
        self.requests.append(request)
        status, body = self.routes.get(request.path, (404, "not found"))
        text = body if isinstance(body, str) else json.dumps(body)
        return web.Response(status=status, text=text, content_type="application/nostr+json")

    def relay_url(self, path: str = "/") -> str:
        """The ``ws://`` relay URL whose NIP-11 document is served at *path*."""
        assert self.server is not None
        return f"ws://{self.server.host}:{self.server.port}{path}"


@pytest.fixture
async def start_info_server() -> AsyncIterator[Callable[..., Awaitable[InfoServer]]]:
    """Start InfoServer instances on local ports; stop them on teardown."""
    servers: list[test_utils.TestServer] = []

    async def _start(routes: dict[str, tuple[int, object]]) -> InfoServer:
        info = InfoServer(routes)
        app = web.Application()
        app.router.add_get("/{tail:.*}", info.handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        servers.append(server)
        info.server = server
        return info

    yield _start

    for server in servers:
        await server.close()
