"""
Crash-resumable crawl state.

One JSON document per base URL::

    {"visitedUrls": [...], "results": [{"targetUrl", "foundOn"}, ...],
     "queue": [{"url", "depth"}, ...]}

Saving always rewrites the whole document.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

from target_crawler.core.frontier import FrontierEntry
from target_crawler.core.matches import MatchRecord
from target_crawler.core.storage import write_replace
from target_crawler.utils.log import log
from target_crawler.utils.url import safe_name


@dataclass
class CrawlState:
    visited_urls: set[str] = field(default_factory=set)
    queue: list[FrontierEntry] = field(default_factory=list)
    results: list[MatchRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "visitedUrls": sorted(self.visited_urls),
            "results": [r.to_dict() for r in self.results],
            "queue": [e.to_dict() for e in self.queue],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CrawlState":
        return cls(
            visited_urls=set(data.get("visitedUrls", [])),
            queue=[FrontierEntry.from_dict(e) for e in data.get("queue", [])],
            results=[MatchRecord.from_dict(r) for r in data.get("results", [])],
        )


class StateStore:
    """Loads and saves the :class:`CrawlState` for one base URL."""

    def __init__(self, states_dir: Path, base_url: str) -> None:
        self.path = Path(states_dir) / f"{safe_name(base_url)}.json"

    def load(self) -> CrawlState:
        """Return the persisted state, or an empty one.

        A missing or unreadable file is not an error: the crawl starts
        fresh.
        """
        log.info("Loading state from %s", self.path)
        if not self.path.exists():
            log.info("No previous state found, starting fresh")
            return CrawlState()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            state = CrawlState.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            log.warning("Could not read state file %s – %s; starting fresh",
                        self.path, exc)
            return CrawlState()
        log.info("Loaded state: %d visited URLs, %d URLs in queue, %d results",
                 len(state.visited_urls), len(state.queue), len(state.results))
        return state

    def save(self, state: CrawlState) -> None:
        write_replace(self.path, json.dumps(state.to_dict(), indent=2, ensure_ascii=False))
        log.debug("[SAVE] state → %s", self.path)
