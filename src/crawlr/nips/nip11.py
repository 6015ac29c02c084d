"""
NIP-11 relay information document retrieval.

A relay serves its information document over plain HTTP(S) on the same
host and path as its WebSocket endpoint when asked with the
``Accept: application/nostr+json`` header:

```text
wss://relay.example.com/nostr  ->  GET https://relay.example.com/nostr
ws://127.0.0.1:7777            ->  GET http://127.0.0.1:7777
```

Only the ``software`` field is consumed by crawlr, by the
[software survey][crawlr.services.crawler.software].

Note:
    Responses larger than 64 KB are rejected. Unlike the WebSocket fetch,
    no specific Content-Type is required: relays commonly answer with
    ``application/json`` or ``text/plain`` and the body is what matters.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING, Any, Final

import aiohttp

from crawlr.utils.http import read_bounded_json


if TYPE_CHECKING:
    from collections.abc import Mapping


NIP11_ACCEPT: Final[str] = "application/nostr+json"
DEFAULT_INFO_TIMEOUT: Final[float] = 10.0
INFO_MAX_SIZE: Final[int] = 65_536

_HTTP_SCHEMES: Final[dict[str, str]] = {"wss": "https", "ws": "http"}


def info_url(url: str) -> str:
    """HTTP(S) URL of the information document of relay *url*.

    Raises:
        ValueError: If *url* is not a ``ws://`` or ``wss://`` URL.
    """
    scheme, sep, rest = url.partition("://")
    http_scheme = _HTTP_SCHEMES.get(scheme.lower()) if sep else None
    if http_scheme is None:
        raise ValueError(f"not a relay URL: {url}")
    return f"{http_scheme}://{rest}"


async def fetch_relay_info(
    url: str,
    timeout: float = DEFAULT_INFO_TIMEOUT,  # noqa: ASYNC109
    *,
    session: aiohttp.ClientSession | None = None,
    max_size: int = INFO_MAX_SIZE,
) -> dict[str, Any]:
    """Fetch the NIP-11 document of relay *url*.

    Args:
        url: Relay WebSocket URL.
        timeout: Total request timeout in seconds.
        session: Optional shared ``aiohttp.ClientSession``; a private one is
            created and closed when omitted.
        max_size: Maximum accepted body size in bytes.

    Returns:
        The parsed document.

    Raises:
        ValueError: Bad relay URL, non-200 status, oversized or non-JSON
            body, or a body that is not a JSON object.
        aiohttp.ClientError: Connection or protocol failure.
        TimeoutError: The request exceeded *timeout*.
    """
    http_url = info_url(url)
    owns_session = session is None
    if session is None:
        session = aiohttp.ClientSession()

    try:
        async with session.get(
            http_url,
            headers={"Accept": NIP11_ACCEPT},
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            if resp.status != HTTPStatus.OK:
                raise ValueError(f"HTTP {resp.status}")
            data = await read_bounded_json(resp, max_size)
    finally:
        if owns_session:
            await session.close()

    if not isinstance(data, dict):
        raise ValueError(f"Expected dict, got {type(data).__name__}")
    return data


def software_name(info: Mapping[str, Any]) -> str | None:
    """The trimmed ``software`` field of *info*, or ``None`` when absent or blank."""
    software = info.get("software")
    if not isinstance(software, str):
        return None
    return software.strip() or None
