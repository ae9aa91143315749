"""
File storage helpers – directories and the results CSV.
"""

import csv
from pathlib import Path
from typing import Iterable

from target_crawler.core.matches import MatchRecord
from target_crawler.utils.log import log

RESULT_HEADERS = ("Target URL", "Found On")


class StorageError(RuntimeError):
    """State or results cannot be written; the crawl cannot continue."""


def ensure_dir(path: Path) -> Path:
    """Create *path* (and parents); raise :class:`StorageError` on failure."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Cannot create directory {path}: {exc}") from exc
    return path


def write_replace(path: Path, text: str) -> None:
    """Write *text* to a ``.tmp`` sibling of *path*, then rename it over
    *path*."""
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(path)
    except OSError as exc:
        raise StorageError(f"Cannot write {path}: {exc}") from exc


class ResultsWriter:
    """Two-column CSV of (target URL, found-on URL), rewritten in full on
    every :meth:`write`."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def write(self, records: Iterable[MatchRecord]) -> int:
        rows = [(r.target_url, r.found_on) for r in records]
        try:
            with self.path.open("w", newline="", encoding="utf-8") as fh:
                writer = csv.writer(fh)
                writer.writerow(RESULT_HEADERS)
                writer.writerows(rows)
        except OSError as exc:
            raise StorageError(f"Cannot write results to {self.path}: {exc}") from exc
        log.debug("[SAVE] %d result(s) → %s", len(rows), self.path)
        return len(rows)
