"""
Relay URL classification and the per-relay crawl record.

[classify()][crawlr.models.relay.classify] maps any raw string advertised in
a relay list to a [RelayCategory][crawlr.models.constants.RelayCategory].
It is a total function: unparsable input is reported as ``MALFORMED``
rather than raising, so a hostile relay list can never break the crawl.

Checks are applied cheapest first and the first match wins:

1. **malformed** -- wrong scheme, RFC 3986 violation, or a hostname
   without an alphabetic top-level label.
2. **local** -- ``.local`` hosts and private/reserved IP literals.
3. **onion** -- ``.onion`` hosts.
4. **api** -- a non-root path is present.
5. **clear_online** -- everything else.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network
from typing import Final, NamedTuple

from rfc3986 import uri_reference
from rfc3986.exceptions import RFC3986Exception
from rfc3986.validators import Validator

from .constants import EXCLUDED_CATEGORIES, SEED, TERMINAL_STATES, CrawlState, RelayCategory


_SCHEMES: Final[tuple[str, ...]] = ("ws://", "wss://")

# Top-level label: a dot followed by at least two letters at the end of the host
_TLD_PATTERN: Final[re.Pattern[str]] = re.compile(r"\.[a-z]{2,}$")

# IANA special-purpose ranges treated as local.
# References:
#   https://www.iana.org/assignments/iana-ipv4-special-registry/
#   https://www.iana.org/assignments/iana-ipv6-special-registry/
_LOCAL_NETWORKS: Final[tuple[IPv4Network | IPv6Network, ...]] = (
    # IPv4
    ip_network("0.0.0.0/8"),  # "this" network
    ip_network("10.0.0.0/8"),  # RFC1918
    ip_network("100.64.0.0/10"),  # RFC6598 carrier-grade NAT
    ip_network("127.0.0.0/8"),  # loopback
    ip_network("169.254.0.0/16"),  # RFC3927 link-local
    ip_network("172.16.0.0/12"),  # RFC1918
    ip_network("192.0.2.0/24"),  # RFC5737 TEST-NET-1
    ip_network("192.168.0.0/16"),  # RFC1918
    ip_network("198.51.100.0/24"),  # RFC5737 TEST-NET-2
    ip_network("203.0.113.0/24"),  # RFC5737 TEST-NET-3
    ip_network("224.0.0.0/4"),  # multicast
    ip_network("240.0.0.0/4"),  # reserved
    ip_network("255.255.255.255/32"),  # broadcast
    # IPv6
    ip_network("::/128"),
    ip_network("::1/128"),
    ip_network("2001:db8::/32"),
    ip_network("fc00::/7"),
    ip_network("fe80::/10"),
    ip_network("ff00::/8"),
)

_VALIDATOR: Final[Validator] = (
    Validator()
    .require_presence_of("scheme", "host")
    .allow_schemes("ws", "wss")
    .check_validity_of("scheme", "host", "port", "path")
)


def normalize_url(raw: str) -> str:
    """Return the canonical form of a relay URL used as the registry key.

    Strips surrounding whitespace, lowercases the whole string and removes
    trailing slashes. No other rewriting happens, so two URLs are the same
    relay exactly when their normalized strings are equal.
    """
    return raw.strip().lower().rstrip("/")


def _is_local_ip(host: str) -> bool | None:
    """Return whether *host* is a local IP literal, or ``None`` if it is not an IP."""
    try:
        ip = ip_address(host)
    except ValueError:
        return None
    mapped = getattr(ip, "ipv4_mapped", None)
    if mapped is not None:
        ip = mapped
    return any(ip in net for net in _LOCAL_NETWORKS)


def classify(raw_url: str) -> RelayCategory:
    """Classify a raw relay URL.

    Deterministic and side-effect free; concurrent callers racing on the
    same URL always compute the same category.

    Args:
        raw_url: URL string exactly as found in a relay list tag.

    Returns:
        The [RelayCategory][crawlr.models.constants.RelayCategory] of the URL.
        Never raises.

    Examples:
        ```python
        classify("wss://relay.example.com")        # CLEAR_ONLINE
        classify("wss://relay.example.com/filter") # CLEAR_API
        classify("wss://abc.onion")                # ONION
        classify("not-a-url")                      # MALFORMED
        ```
    """
    if not isinstance(raw_url, str) or "\x00" in raw_url:
        return RelayCategory.MALFORMED

    url = normalize_url(raw_url)
    if not url.startswith(_SCHEMES):
        return RelayCategory.MALFORMED

    try:
        uri = uri_reference(url)
        _VALIDATOR.validate(uri)
    except (RFC3986Exception, ValueError):
        return RelayCategory.MALFORMED

    host = (uri.host or "").strip("[]")
    is_local_ip = _is_local_ip(host)

    # IP literals carry no top-level label; only hostnames need one
    if is_local_ip is None and not _TLD_PATTERN.search(host):
        return RelayCategory.MALFORMED

    if is_local_ip or host.endswith(".local"):
        return RelayCategory.LOCAL

    if host.endswith(".onion"):
        return RelayCategory.ONION

    if uri.path and uri.path != "/":
        return RelayCategory.CLEAR_API

    return RelayCategory.CLEAR_ONLINE


class RelayRow(NamedTuple):
    """Positional checkpoint row for a [RelayRecord][crawlr.models.relay.RelayRecord]."""

    url: str
    discovery_count: int
    discovered_by: str
    category: str
    crawl_state: str
    depth: int


@dataclass(frozen=True, slots=True)
class RelayRecord:
    """Immutable snapshot of everything known about one relay.

    The [Registry][crawlr.core.registry.Registry] owns the live record for
    each URL and replaces it atomically on every transition; callers only
    ever see consistent snapshots.

    Attributes:
        url: Normalized relay URL (registry key).
        category: Category computed at first registration.
        crawl_state: Current [CrawlState][crawlr.models.constants.CrawlState].
        discovery_count: Number of times the URL was advertised (>= 1).
        discovered_by: URL of the relay that first advertised it, or ``"seed"``.
        depth: Hops from a seed at first registration.
        attempts: Fetch attempts made in this process.

    Raises:
        ValueError: If ``discovery_count`` < 1 or ``depth``/``attempts`` < 0.
    """

    url: str
    category: RelayCategory
    crawl_state: CrawlState
    discovery_count: int = 1
    discovered_by: str = SEED
    depth: int = 0
    attempts: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        if self.discovery_count < 1:
            raise ValueError(f"discovery_count must be >= 1, got {self.discovery_count}")
        if self.depth < 0:
            raise ValueError(f"depth must be non-negative, got {self.depth}")
        if self.attempts < 0:
            raise ValueError(f"attempts must be non-negative, got {self.attempts}")

    @property
    def is_excluded(self) -> bool:
        """Whether the category keeps this relay out of the frontier permanently."""
        return self.category in EXCLUDED_CATEGORIES

    @property
    def is_terminal(self) -> bool:
        """Whether this record satisfies the completion predicate."""
        return self.is_excluded or self.crawl_state in TERMINAL_STATES

    def to_row(self) -> RelayRow:
        """Return the positional row written to checkpoint files."""
        return RelayRow(
            url=self.url,
            discovery_count=self.discovery_count,
            discovered_by=self.discovered_by,
            category=self.category.value,
            crawl_state=self.crawl_state.value,
            depth=self.depth,
        )

    @classmethod
    def from_row(cls, row: RelayRow) -> RelayRecord:
        """Rebuild a record from a checkpoint row.

        The stored category is trusted as-is: categories are never
        recomputed once assigned.

        Raises:
            ValueError: If a field cannot be converted.
        """
        return cls(
            url=normalize_url(row.url),
            category=RelayCategory(row.category),
            crawl_state=CrawlState(row.crawl_state),
            discovery_count=int(row.discovery_count),
            discovered_by=row.discovered_by or SEED,
            depth=int(row.depth),
        )
