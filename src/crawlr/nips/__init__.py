"""Nostr Implementation Possibilities -- relay list query helpers.

Sits between [crawlr.models][crawlr.models] and
[crawlr.utils][crawlr.utils]. Message encoding and decoding come from
``nostr_sdk``; the WebSocket I/O lives in
[crawlr.utils.transport][crawlr.utils.transport] and the NIP-11 HTTP fetch in
[crawlr.nips.nip11][crawlr.nips.nip11].

Attributes:
    relay_list_filter: Kind 10002 ``nostr_sdk.Filter``.
    relay_list_request: The ``REQ`` as a ``nostr_sdk.ClientMessage``.
    decode_relay_message: Decode one relay frame, raising
        [DecodeError][crawlr.core.exceptions.DecodeError] on rejected frames.
    extract_relay_urls: Collect ``r`` tag URLs of a relay list event.
    fetch_relay_info: Fetch a relay's NIP-11 information document.
"""

from crawlr.nips.nip11 import (
    NIP11_ACCEPT,
    fetch_relay_info,
    info_url,
    software_name,
)
from crawlr.nips.nip65 import (
    DEFAULT_LIMIT,
    DEFAULT_SUBSCRIPTION_ID,
    decode_relay_message,
    extract_relay_urls,
    is_relay_list,
    relay_list_filter,
    relay_list_request,
)


__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_SUBSCRIPTION_ID",
    "NIP11_ACCEPT",
    "decode_relay_message",
    "extract_relay_urls",
    "fetch_relay_info",
    "info_url",
    "is_relay_list",
    "relay_list_filter",
    "relay_list_request",
    "software_name",
]
