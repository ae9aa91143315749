"""
Loading the set of target URLs to search for.
"""

import csv
from pathlib import Path

from target_crawler.utils.log import log
from target_crawler.utils.url import normalize_url


class TargetSourceError(RuntimeError):
    """The target file is missing or unreadable."""


def load_targets(path: Path, column: str = "Page URL") -> frozenset[str]:
    """Read every *column* value from the CSV file at *path* and return the
    canonical form of each.

    Rows with a blank or non-URL value are skipped.
    """
    path = Path(path)
    try:
        fh = path.open(newline="", encoding="utf-8-sig")
    except OSError as exc:
        raise TargetSourceError(f"Cannot read targets file {path}: {exc}") from exc

    targets: set[str] = set()
    skipped = 0
    with fh:
        reader = csv.DictReader(fh)
        if reader.fieldnames is None:
            log.warning("Targets file %s is empty", path)
            return frozenset()
        if column not in reader.fieldnames:
            log.warning("Column %r not found in %s (columns: %s); no targets loaded",
                        column, path, ", ".join(reader.fieldnames))
            return frozenset()
        for row in reader:
            value = (row.get(column) or "").strip()
            url = normalize_url(value, value) if value else None
            if url:
                targets.add(url)
            else:
                skipped += 1

    if skipped:
        log.debug("Skipped %d record(s) without %r", skipped, column)
    return frozenset(targets)
