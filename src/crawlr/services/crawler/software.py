"""Relay software survey.

After a complete crawl, every crawled ``clear_online`` relay is asked for
its NIP-11 document and bucketed by the ``software`` it reports:

```text
document fetched, software set  -> <software>
document fetched, no software   -> "No Software Listed"
any fetch or decode failure     -> "Offline"
```

Buckets with fewer than ``threshold`` relays are folded into ``"Other"``
and the result is written to ``software_counts.csv``:

```text
Software,Count
git+https://github.com/hoytech/strfry.git,412
Other,97
Offline,55
```
"""

from __future__ import annotations

import asyncio
import contextlib
import csv
import logging
import os
import tempfile
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, Final

import aiohttp

from crawlr.core.exceptions import CheckpointError
from crawlr.nips.nip11 import DEFAULT_INFO_TIMEOUT, fetch_relay_info, software_name


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


OFFLINE: Final[str] = "Offline"
NO_SOFTWARE_LISTED: Final[str] = "No Software Listed"
OTHER: Final[str] = "Other"
SOFTWARE_COUNTS_FILE: Final[str] = "software_counts.csv"
DEFAULT_THRESHOLD: Final[int] = 10

_logger = logging.getLogger(__name__)


async def fetch_software(
    url: str,
    timeout: float = DEFAULT_INFO_TIMEOUT,  # noqa: ASYNC109
    *,
    session: aiohttp.ClientSession | None = None,
) -> str:
    """Return the software bucket of relay *url*. Never raises a fetch error."""
    try:
        info = await fetch_relay_info(url, timeout, session=session)
    except (OSError, TimeoutError, aiohttp.ClientError, ValueError) as e:
        _logger.debug("nip11_failed url=%s error=%s", url, str(e) or type(e).__name__)
        return OFFLINE
    return software_name(info) or NO_SOFTWARE_LISTED


async def survey_software(
    urls: Iterable[str],
    *,
    timeout: float = DEFAULT_INFO_TIMEOUT,  # noqa: ASYNC109
    max_parallel: int = 20,
) -> Counter[str]:
    """Query every relay in *urls*, at most *max_parallel* at a time.

    Returns:
        Relays per software bucket, before any grouping.
    """
    semaphore = asyncio.Semaphore(max_parallel)

    async with aiohttp.ClientSession() as session:

        async def _fetch(url: str) -> str:
            async with semaphore:
                return await fetch_software(url, timeout, session=session)

        labels = await asyncio.gather(*(_fetch(url) for url in urls))

    counts = Counter(labels)
    _logger.info("software_surveyed relays=%d buckets=%d", len(labels), len(counts))
    return counts


def group_rare(counts: Mapping[str, int], threshold: int = DEFAULT_THRESHOLD) -> Counter[str]:
    """Fold every bucket with fewer than *threshold* relays into ``"Other"``."""
    grouped: Counter[str] = Counter()
    for software, count in counts.items():
        grouped[OTHER if count < threshold else software] += count
    return grouped


def write_software_counts(counts: Mapping[str, int], directory: str | Path) -> Path:
    """Write *counts* to ``software_counts.csv``, largest bucket first.

    Raises:
        CheckpointError: If the directory or file cannot be written.
    """
    root = Path(directory)
    path = root / SOFTWARE_COUNTS_FILE
    rows = sorted(counts.items(), key=lambda item: (-item[1], item[0]))

    try:
        root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=root, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(("Software", "Count"))
                writer.writerows(rows)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise CheckpointError(f"cannot write {path}: {e}") from e

    _logger.info("software_counts_saved path=%s buckets=%d", path, len(rows))
    return path
