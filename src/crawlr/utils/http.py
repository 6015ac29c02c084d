"""HTTP utilities for crawlr.

Provides bounded JSON reading for HTTP responses so that an oversized
relay information document cannot exhaust memory.

Note:
    This module sits in the ``utils`` layer and depends only on stdlib and
    ``aiohttp``. It is importable from both ``nips`` and ``services``.

See Also:
    [fetch_relay_info()][crawlr.nips.nip11.fetch_relay_info]: NIP-11 fetch
        that uses [read_bounded_json][crawlr.utils.http.read_bounded_json].
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    import aiohttp


async def _read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Read an entire response body with size enforcement.

    Accumulates chunks until EOF, so chunked transfer-encoding that returns
    short reads is handled.

    Raises:
        ValueError: If the response body exceeds *max_size*.
    """
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(max_size + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


async def read_bounded_json(response: aiohttp.ClientResponse, max_size: int) -> Any:
    """Read and parse a JSON response body of at most *max_size* bytes.

    Raises:
        ValueError: If the body exceeds *max_size* or is not valid JSON
            (``json.JSONDecodeError`` and ``UnicodeDecodeError`` are both
            ``ValueError`` subclasses).
    """
    body = await _read_bounded(response, max_size)
    return json.loads(body)
