"""crawlr exception hierarchy.

Provides typed exceptions for every error category so that callers can
distinguish a relay that is merely unreachable (retry, then mark offline)
from a broken configuration (abort), while letting ``CancelledError``
propagate untouched.

Exception hierarchy:

```text
CrawlrError (base -- never raised directly)
├── ConfigurationError       -- config validation, missing keys, bad YAML
├── CheckpointError          -- checkpoint file unreadable or unwritable
└── FetchError               -- one fetch attempt against one relay failed
    ├── ConnectivityError
    │   ├── RelayConnectError  -- dial, TLS or WebSocket handshake failure
    │   └── RelayTimeoutError  -- no terminal message before the deadline
    ├── ProtocolError          -- transport error on an open channel
    └── DecodeError            -- message payload not structurally valid
```

See Also:
    [fetch_relay_list()][crawlr.utils.transport.fetch_relay_list]: Raises
        the [FetchError][crawlr.core.exceptions.FetchError] subclasses.
    [Crawler][crawlr.services.crawler.Crawler]: Catches
        [FetchError][crawlr.core.exceptions.FetchError] per attempt and
        retries before marking a relay offline.
"""

from __future__ import annotations


class CrawlrError(Exception):
    """Base exception for all crawlr errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(CrawlrError):
    """Invalid or missing configuration (YAML, CLI flags)."""


# ---------------------------------------------------------------------------
# Checkpoint
# ---------------------------------------------------------------------------


class CheckpointError(CrawlrError):
    """A checkpoint file could not be read or written.

    Malformed individual rows are skipped with a warning; this is raised
    only when the file as a whole is unusable.
    """


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


class FetchError(CrawlrError):
    """Base for errors raised by a single relay-list fetch attempt.

    Every subclass is recoverable: the crawler retries the relay and only
    marks it offline once the retry budget is exhausted.

    Attributes:
        url: The relay URL the attempt targeted.
    """

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class ConnectivityError(FetchError):
    """Base for relay/network connectivity errors."""


class RelayConnectError(ConnectivityError):
    """Dial, TLS or WebSocket handshake failed, or the connect deadline elapsed."""


class RelayTimeoutError(ConnectivityError):
    """The relay did not finish the subscription before the attempt deadline."""


class ProtocolError(FetchError):
    """Transport-level failure on an open channel (send error, error frame)."""


class DecodeError(FetchError):
    """A relay message was rejected by the nostr-sdk decoder.

    Raised by [decode_relay_message()][crawlr.nips.nip65.decode_relay_message].
    The fetch client logs and skips such messages instead of failing the
    attempt.
    """
