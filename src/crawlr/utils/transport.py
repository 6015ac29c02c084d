"""WebSocket fetch client for NIP-65 relay lists.

[fetch_relay_list()][crawlr.utils.transport.fetch_relay_list] performs one
attempt against one relay: connect, send a single ``REQ`` for kind 10002,
collect the ``r`` tag URLs of every matching event, and stop at the end of
stored events. It holds no shared state, so any number of calls may run
concurrently; retry policy belongs to the caller.

Outcome of an attempt:

```text
EOSE for our subscription            -> success (CLOSE sent best-effort)
channel closed cleanly by the relay  -> success
dial / TLS / handshake failure       -> RelayConnectError
deadline elapsed before the end      -> RelayTimeoutError
send failure or error frame          -> ProtocolError
```

A ``CLOSED`` for our subscription (rate limiting, auth required) does not
end the attempt: it is logged and the attempt runs into its deadline, so
the caller retries the relay. Frames that nostr-sdk rejects are logged and
skipped; they never fail the attempt on their own.

See Also:
    [crawlr.nips.nip65][crawlr.nips.nip65]: Request and decoding helpers
        built on nostr-sdk message types.
    [Crawler][crawlr.services.crawler.Crawler]: Retries failed attempts and
        marks relays offline.

Examples:
    ```python
    from crawlr.utils.transport import fetch_relay_list

    urls = await fetch_relay_list("wss://nos.lol", timeout=10.0)
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
from typing import Final

import aiohttp
from nostr_sdk import ClientMessage

from crawlr.core.exceptions import DecodeError, ProtocolError, RelayConnectError, RelayTimeoutError
from crawlr.nips.nip65 import (
    DEFAULT_LIMIT,
    DEFAULT_SUBSCRIPTION_ID,
    decode_relay_message,
    extract_relay_urls,
    is_relay_list,
    relay_list_request,
)


DEFAULT_TIMEOUT: Final[float] = 10.0
DEFAULT_CONNECT_TIMEOUT: Final[float] = 10.0

_WS_CLOSE_TIMEOUT = 5.0

_CLOSE_TYPES: Final[frozenset[aiohttp.WSMsgType]] = frozenset(
    {aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED}
)


logger = logging.getLogger(__name__)


async def _connect(
    session: aiohttp.ClientSession,
    url: str,
    connect_timeout: float,
) -> aiohttp.ClientWebSocketResponse:
    """Open the WebSocket, translating every failure into RelayConnectError."""
    try:
        async with asyncio.timeout(connect_timeout):
            return await session.ws_connect(url)
    except TimeoutError:
        logger.debug("ws_connect_timeout url=%s timeout=%s", url, connect_timeout)
        raise RelayConnectError(f"connect timeout after {connect_timeout}s", url) from None
    except (aiohttp.ClientError, ssl.SSLError, OSError, ValueError) as e:
        logger.debug("ws_connect_failed url=%s error=%s", url, str(e))
        raise RelayConnectError(f"connection failed: {e}", url) from e


async def _send_close(ws: aiohttp.ClientWebSocketResponse, subscription_id: str) -> None:
    """Tell the relay the subscription is over; failures are irrelevant by then."""
    with contextlib.suppress(aiohttp.ClientError, ConnectionError, RuntimeError):
        await ws.send_str(ClientMessage.close(subscription_id).as_json())


async def _read_relay_list(
    ws: aiohttp.ClientWebSocketResponse,
    url: str,
    subscription_id: str,
) -> list[str]:
    """Consume frames until the stored events or the channel end."""
    urls: list[str] = []

    while True:
        try:
            msg = await ws.receive()
        except aiohttp.ClientError as e:
            raise ProtocolError(f"receive failed: {e}", url) from e

        if msg.type in _CLOSE_TYPES:
            logger.debug("ws_closed_by_relay url=%s urls=%d", url, len(urls))
            return urls

        if msg.type == aiohttp.WSMsgType.ERROR:
            error = ws.exception() or msg.data
            raise ProtocolError(f"websocket error: {error}", url)

        if msg.type != aiohttp.WSMsgType.TEXT:
            continue

        try:
            message = decode_relay_message(msg.data)
        except DecodeError as e:
            logger.debug("relay_message_skipped url=%s error=%s", url, str(e))
            continue

        if message.is_event_msg():
            if message.subscription_id == subscription_id and is_relay_list(message.event):
                urls.extend(extract_relay_urls(message.event))
        elif message.is_end_of_stored_events():
            if message.subscription_id == subscription_id:
                await _send_close(ws, subscription_id)
                return urls
        elif message.is_closed() and message.subscription_id == subscription_id:
            logger.debug("subscription_closed url=%s reason=%s", url, message.message)


async def fetch_relay_list(  # noqa: PLR0913
    url: str,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    *,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    limit: int = DEFAULT_LIMIT,
    subscription_id: str = DEFAULT_SUBSCRIPTION_ID,
    session: aiohttp.ClientSession | None = None,
) -> list[str]:
    """Fetch the relay URLs advertised in a relay's kind 10002 events.

    Args:
        url: Relay WebSocket URL.
        timeout: Deadline in seconds for receiving the end of stored events,
            measured from the moment the request is sent.
        connect_timeout: Deadline in seconds for dial, TLS and handshake.
        limit: ``limit`` filter field of the request.
        subscription_id: Subscription id of the request.
        session: Optional shared ``aiohttp.ClientSession``; a private one is
            created and closed when omitted.

    Returns:
        Every ``r`` tag URL in arrival order, duplicates included.

    Raises:
        RelayConnectError: The connection could not be established.
        RelayTimeoutError: Neither EOSE nor a clean close arrived before
            *timeout*, including when the relay sent ``CLOSED``.
        ProtocolError: Sending failed or the channel reported an error.
        asyncio.CancelledError: Propagated after the connection is closed.
    """
    request = relay_list_request(subscription_id, limit).as_json()
    owns_session = session is None
    if session is None:
        session = aiohttp.ClientSession()

    try:
        ws = await _connect(session, url, connect_timeout)
        try:
            try:
                await ws.send_str(request)
            except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
                raise ProtocolError(f"send failed: {e}", url) from e

            try:
                async with asyncio.timeout(timeout):
                    urls = await _read_relay_list(ws, url, subscription_id)
            except TimeoutError:
                logger.debug("relay_list_timeout url=%s timeout=%s", url, timeout)
                raise RelayTimeoutError(f"no EOSE within {timeout}s", url) from None
        finally:
            # Close errors never replace the attempt outcome.
            with contextlib.suppress(Exception):
                await asyncio.wait_for(ws.close(), timeout=_WS_CLOSE_TIMEOUT)
    finally:
        if owns_session:
            await session.close()

    logger.debug("relay_list_fetched url=%s urls=%d", url, len(urls))
    return urls
