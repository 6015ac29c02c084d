"""WebSocket and HTTP transport for relay queries.

The utils layer depends on [crawlr.models][crawlr.models], the
[crawlr.nips.nip65][crawlr.nips.nip65] helpers and the exception types of
[crawlr.core.exceptions][crawlr.core.exceptions]. It never touches the
registry or the service layer.

Attributes:
    transport: [fetch_relay_list()][crawlr.utils.transport.fetch_relay_list],
        one bounded fetch attempt against one relay over aiohttp WebSockets.
    http: [read_bounded_json()][crawlr.utils.http.read_bounded_json],
        size-limited JSON body reading.
"""

from crawlr.utils.http import read_bounded_json
from crawlr.utils.transport import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_TIMEOUT,
    fetch_relay_list,
)


__all__ = [
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_TIMEOUT",
    "fetch_relay_list",
    "read_bounded_json",
]
