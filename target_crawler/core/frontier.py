"""
The crawl frontier: the BFS queue of (url, depth) pairs plus the set of
URLs already accepted for processing.
"""

from collections import deque
from dataclasses import asdict, dataclass
from typing import Callable, Iterable

from target_crawler.utils.url import is_same_domain


@dataclass(frozen=True)
class FrontierEntry:
    url: str
    depth: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "FrontierEntry":
        return cls(url=str(data["url"]), depth=int(data["depth"]))


class Frontier:
    """
    FIFO queue of :class:`FrontierEntry` plus the visited set.

    Enqueueing does not mark a URL visited, so the same URL can sit in the
    queue more than once.  :meth:`mark_visited` is the de-duplication
    guard and is called when an entry is accepted for processing.
    """

    def __init__(
        self,
        base_url: str,
        max_depth: int,
        is_allowed: Callable[[str], bool] = lambda url: True,
        visited: Iterable[str] = (),
        queue: Iterable[FrontierEntry] = (),
    ) -> None:
        self.base_url = base_url
        self.max_depth = max_depth
        self._is_allowed = is_allowed
        self._visited: set[str] = set(visited)
        self._queue: deque[FrontierEntry] = deque(queue)

    def __len__(self) -> int:
        return len(self._queue)

    def is_empty(self) -> bool:
        return not self._queue

    @property
    def visited(self) -> frozenset[str]:
        return frozenset(self._visited)

    def is_visited(self, url: str) -> bool:
        return url in self._visited

    def pending(self) -> list[FrontierEntry]:
        """Snapshot of the queue, head first."""
        return list(self._queue)

    def seed(self, start_url: str) -> bool:
        """Enqueue *start_url* at depth 0 if nothing is queued yet."""
        if self._queue:
            return False
        self._queue.append(FrontierEntry(start_url, 0))
        return True

    def can_enqueue(self, url: str, depth: int) -> bool:
        return (
            depth <= self.max_depth
            and url not in self._visited
            and is_same_domain(url, self.base_url)
            and self._is_allowed(url)
        )

    def try_enqueue(self, url: str, depth: int) -> bool:
        """Append (*url*, *depth*) to the tail if it is in scope."""
        if not self.can_enqueue(url, depth):
            return False
        self._queue.append(FrontierEntry(url, depth))
        return True

    def take_batch(self, n: int) -> list[FrontierEntry]:
        """Remove and return up to *n* entries from the head."""
        batch: list[FrontierEntry] = []
        while self._queue and len(batch) < n:
            batch.append(self._queue.popleft())
        return batch

    def mark_visited(self, url: str) -> bool:
        """Mark *url* visited; ``False`` if it already was."""
        if url in self._visited:
            return False
        self._visited.add(url)
        return True
