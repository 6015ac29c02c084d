"""
NIP-65 relay list query built on nostr-sdk message types.

The crawler sends one ``REQ`` for kind 10002 and reads back relay messages:

```text
client -> relay   ["REQ", <sub_id>, {"kinds": [10002], "limit": <n>}]
                  ["CLOSE", <sub_id>]
relay -> client   ["EVENT", <sub_id>, <event>]
                  ["EOSE", <sub_id>]                 (end of stored events)
                  anything else                      (ignored by the caller)
```

Encoding and decoding are delegated to ``nostr_sdk.ClientMessage`` and
``nostr_sdk.RelayMessage``; this module only fixes the filter and scans the
``r`` tags of decoded events. Signatures are not checked: the crawler
consumes relay URLs, not authored content.

See Also:
    [fetch_relay_list()][crawlr.utils.transport.fetch_relay_list]: The
        WebSocket client that sends these messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from nostr_sdk import ClientMessage, Filter, Kind, NostrSdkError, RelayMessage

from crawlr.core.exceptions import DecodeError
from crawlr.models.constants import EventKind


if TYPE_CHECKING:
    from nostr_sdk import Event, RelayMessageEnum


DEFAULT_SUBSCRIPTION_ID: Final[str] = "crawlr"
DEFAULT_LIMIT: Final[int] = 100

_MIN_TAG_LEN: Final[int] = 2


def relay_list_filter(limit: int = DEFAULT_LIMIT) -> Filter:
    """Filter matching up to *limit* relay list metadata events.

    Raises:
        ValueError: If *limit* is not positive.
    """
    if limit < 1:
        raise ValueError(f"limit must be positive, got {limit}")
    return Filter().kind(Kind(EventKind.RELAY_LIST)).limit(limit)


def relay_list_request(
    subscription_id: str = DEFAULT_SUBSCRIPTION_ID,
    limit: int = DEFAULT_LIMIT,
) -> ClientMessage:
    """The ``REQ`` for relay list metadata under *subscription_id*.

    Raises:
        ValueError: If *limit* is not positive or *subscription_id* is empty.
    """
    if not subscription_id:
        raise ValueError("subscription_id must not be empty")
    return ClientMessage.req(subscription_id, relay_list_filter(limit))


def decode_relay_message(text: str) -> RelayMessageEnum:
    """Decode one relay frame into its ``RelayMessageEnum`` variant.

    Raises:
        DecodeError: If nostr-sdk rejects the frame (invalid JSON, unknown
            label, missing fields or a malformed event).
    """
    try:
        return RelayMessage.from_json(text).as_enum()
    except NostrSdkError as e:
        raise DecodeError(f"invalid relay message: {e}") from e


def is_relay_list(event: Event) -> bool:
    """Whether *event* is a kind 10002 relay list metadata event."""
    return event.kind().as_u16() == EventKind.RELAY_LIST


def extract_relay_urls(event: Event) -> list[str]:
    """Return the url of every ``["r", url, ...]`` tag, in tag order.

    Markers are ignored and duplicates are kept: each occurrence counts as
    a discovery.
    """
    urls: list[str] = []
    for tag in event.tags().to_vec():
        values = tag.as_vec()
        if len(values) >= _MIN_TAG_LEN and values[0] == "r":
            urls.append(values[1])
    return urls
