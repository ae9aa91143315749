"""Core crawler logic – frontier, match tracking, state and storage."""

from target_crawler.core.crawler import Crawler, CrawlPhase, CrawlReport
from target_crawler.core.frontier import Frontier, FrontierEntry
from target_crawler.core.matches import MatchRecord, MatchTracker
from target_crawler.core.state import CrawlState, StateStore
from target_crawler.core.storage import ResultsWriter, StorageError
from target_crawler.core.targets import TargetSourceError, load_targets

__all__ = [
    "Crawler",
    "CrawlPhase",
    "CrawlReport",
    "Frontier",
    "FrontierEntry",
    "MatchRecord",
    "MatchTracker",
    "CrawlState",
    "StateStore",
    "ResultsWriter",
    "StorageError",
    "TargetSourceError",
    "load_targets",
]
