"""Crawler service utility functions.

Pure helpers that do not require service instance state.
"""

from __future__ import annotations

import logging
from pathlib import Path


_logger = logging.getLogger(__name__)


def parse_seed_file(path: str | Path) -> list[str]:
    """Read seed relay URLs from a text file.

    One URL per line. Blank lines and lines starting with ``#`` are
    skipped. URLs are returned as written; classification happens when they
    are registered, so an invalid seed is recorded as malformed instead of
    silently dropped.

    Args:
        path: Path to the seed file.

    Returns:
        Seed URLs in file order; empty if the file does not exist.
    """
    path = Path(path)
    seeds: list[str] = []

    try:
        with path.open(encoding="utf-8") as f:
            for line in f:
                url = line.strip()
                if not url or url.startswith("#"):
                    continue
                seeds.append(url)
    except FileNotFoundError:
        _logger.warning("seed_file_not_found path=%s", path)

    return seeds
