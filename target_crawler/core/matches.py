"""
Match tracking: which targets have been found, and where.
"""

from dataclasses import dataclass
from typing import Iterable

from target_crawler.utils.log import log


@dataclass(frozen=True)
class MatchRecord:
    target_url: str
    found_on: str

    def to_dict(self) -> dict:
        return {"targetUrl": self.target_url, "foundOn": self.found_on}

    @classmethod
    def from_dict(cls, data: dict) -> "MatchRecord":
        return cls(target_url=str(data["targetUrl"]), found_on=str(data["foundOn"]))


class MatchTracker:
    """Records the first page each target was found on.

    The found set only ever holds members of *targets*, so comparing its
    size with the target count is enough to tell when the crawl is done.
    """

    def __init__(self, targets: Iterable[str]) -> None:
        self.targets: frozenset[str] = frozenset(targets)
        self._found: set[str] = set()
        self._records: list[MatchRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def found(self) -> frozenset[str]:
        return frozenset(self._found)

    @property
    def records(self) -> list[MatchRecord]:
        return list(self._records)

    def record(self, target_url: str, found_on: str) -> bool:
        """Record *target_url* as found on *found_on*.

        Returns ``True`` only for the first discovery of a target.
        """
        if target_url not in self.targets or target_url in self._found:
            return False
        self._found.add(target_url)
        self._records.append(MatchRecord(target_url, found_on))
        return True

    def all_found(self) -> bool:
        return len(self._found) == len(self.targets)

    def restore(self, records: Iterable[MatchRecord]) -> int:
        """Replay persisted *records*; returns how many were kept."""
        kept = 0
        for rec in records:
            if self.record(rec.target_url, rec.found_on):
                kept += 1
            else:
                log.debug("Dropping stale or duplicate result for %s", rec.target_url)
        return kept
