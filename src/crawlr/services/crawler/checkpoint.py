"""CSV persistence of the relay registry.

Every row is one [RelayRecord][crawlr.models.relay.RelayRecord]:

```text
url,discovery_count,discovered_by,category,crawl_state,depth
wss://nos.lol,57,seed,clear_online,crawled,0
wss://relay.damus.io,41,wss://nos.lol,clear_online,crawled,1
```

Files are written sorted by descending ``discovery_count``, either to one
``relays.csv`` or to one ``<category>_relays.csv`` per category. Each file is
written to a temporary sibling first and moved into place with
``os.replace``, so a crash never leaves a half-written checkpoint behind.
Only the files of the active layout survive a save; files of the other
layout are removed so a later load never mixes stale rows in.
"""

from __future__ import annotations

import contextlib
import csv
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Final

from crawlr.core.exceptions import CheckpointError
from crawlr.models.constants import RelayCategory
from crawlr.models.relay import RelayRecord, RelayRow


if TYPE_CHECKING:
    from collections.abc import Iterable


FIELDNAMES: Final[tuple[str, ...]] = RelayRow._fields
SINGLE_FILE: Final[str] = "relays.csv"

_logger = logging.getLogger(__name__)


def category_file(category: RelayCategory) -> str:
    """File name of the partition holding *category*."""
    return f"{category.value}_relays.csv"


def _partition_files() -> list[str]:
    return [category_file(c) for c in RelayCategory]


def _sort_key(record: RelayRecord) -> tuple[int, str]:
    return (-record.discovery_count, record.url)


def _write_csv(path: Path, records: list[RelayRecord]) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(FIELDNAMES)
            writer.writerows(r.to_row() for r in sorted(records, key=_sort_key))
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def save_checkpoint(
    records: Iterable[RelayRecord],
    directory: str | Path,
    *,
    partition_by_category: bool = True,
) -> list[Path]:
    """Write *records* to the checkpoint directory.

    Args:
        records: Registry snapshot to persist.
        directory: Target directory, created if missing.
        partition_by_category: Write one file per category (every category
            gets a file, possibly holding only the header) instead of a
            single ``relays.csv``.

    Returns:
        Paths written.

    Raises:
        CheckpointError: If the directory or a file cannot be written.
    """
    root = Path(directory)
    records = list(records)
    written: list[Path] = []

    try:
        root.mkdir(parents=True, exist_ok=True)

        if partition_by_category:
            by_category: dict[RelayCategory, list[RelayRecord]] = {c: [] for c in RelayCategory}
            for record in records:
                by_category[record.category].append(record)
            for category, rows in by_category.items():
                path = root / category_file(category)
                _write_csv(path, rows)
                written.append(path)
            stale = [SINGLE_FILE]
        else:
            path = root / SINGLE_FILE
            _write_csv(path, records)
            written.append(path)
            stale = _partition_files()

        for name in stale:
            (root / name).unlink(missing_ok=True)
    except OSError as e:
        raise CheckpointError(f"cannot write checkpoint to {root}: {e}") from e

    _logger.info("checkpoint_saved directory=%s files=%d relays=%d", root, len(written), len(records))
    return written


def _read_csv(path: Path) -> list[RelayRecord]:
    records: list[RelayRecord] = []
    try:
        with path.open(encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            missing = set(FIELDNAMES) - set(reader.fieldnames or ())
            if missing:
                raise CheckpointError(
                    f"checkpoint {path} is missing columns: {', '.join(sorted(missing))}"
                )
            for line_no, row in enumerate(reader, start=2):
                try:
                    records.append(RelayRecord.from_row(RelayRow(**{k: row[k] for k in FIELDNAMES})))
                except (ValueError, TypeError, AttributeError) as e:
                    _logger.warning("checkpoint_row_skipped path=%s line=%d error=%s", path, line_no, e)
    except (OSError, csv.Error) as e:
        raise CheckpointError(f"cannot read checkpoint {path}: {e}") from e
    return records


def load_checkpoint(directory: str | Path) -> list[RelayRecord]:
    """Read every checkpoint file in *directory*.

    Both layouts are recognised. A missing directory or missing files
    yield an empty list. Rows that cannot be converted are skipped with a
    warning.

    Raises:
        CheckpointError: If a file exists but cannot be read or lacks
            required columns.
    """
    root = Path(directory)
    if not root.is_dir():
        return []

    records: list[RelayRecord] = []
    for name in [*_partition_files(), SINGLE_FILE]:
        path = root / name
        if path.is_file():
            records.extend(_read_csv(path))

    _logger.info("checkpoint_loaded directory=%s relays=%d", root, len(records))
    return records
