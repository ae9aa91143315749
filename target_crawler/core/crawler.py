"""
Target link crawler.

Crawls one website breadth-first from its base URL, looking for pages
that link to any of a fixed set of target URLs.  Supports:

* robots.txt respect
* A depth limit
* Batched concurrent fetching (batch width = worker count)
* Resume from a JSON state file after a crash or interruption
* Early termination once every target has been found
"""

import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum

import requests
from tqdm import tqdm

from target_crawler.config import CrawlConfig
from target_crawler.core.frontier import Frontier, FrontierEntry
from target_crawler.core.matches import MatchTracker
from target_crawler.core.state import CrawlState, StateStore
from target_crawler.core.storage import ResultsWriter, StorageError, ensure_dir
from target_crawler.core.targets import load_targets
from target_crawler.session import PageFetcher, build_session
from target_crawler.utils.log import log
from target_crawler.utils.robots import RobotsPolicy
from target_crawler.utils.url import normalize_url, safe_name


class CrawlPhase(Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class CrawlReport:
    """Outcome of one crawl.

    ``status`` is ``"complete"`` when every target was found, ``"partial"``
    when the frontier ran dry first, and ``"aborted"`` when an unexpected
    error stopped the crawl.
    """

    status: str
    found: int
    total: int
    visited: int
    queued: int

    @property
    def complete(self) -> bool:
        return self.status == "complete"


class Crawler:
    """
    Batched BFS crawler that stops as soon as every target URL has been
    seen in a link on some crawled page.

    Frontier, visited set and matches are only touched while holding
    ``_lock``; worker threads do their network I/O outside it.
    """

    def __init__(
        self,
        config: CrawlConfig,
        session: requests.Session | None = None,
        fetcher: PageFetcher | None = None,
        show_progress: bool = True,
    ) -> None:
        self.config = config
        self.session = session or build_session(pool_size=max(10, config.max_concurrent))
        self.fetcher = fetcher or PageFetcher(self.session, timeout=config.timeout)
        self.show_progress = show_progress
        self.phase = CrawlPhase.IDLE

        key = safe_name(config.base_url)
        self.state_store = StateStore(config.states_dir, config.base_url)
        self.results = ResultsWriter(config.results_dir / f"{key}.csv")

        self.targets: frozenset[str] = frozenset()
        self.robots = RobotsPolicy.allow_all()
        self.frontier = Frontier(config.base_url, config.max_depth)
        self.matches = MatchTracker(())

        self._lock = threading.RLock()
        self._active = threading.Lock()
        self._stats = {"ok": 0, "err": 0, "skip": 0, "dup": 0}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> CrawlReport | None:
        """Run a full crawl and return its report.

        Returns ``None`` without doing anything when a crawl is already in
        progress on this instance.  Raises :class:`StorageError` or
        :class:`~target_crawler.core.targets.TargetSourceError` when the
        crawl cannot start.
        """
        if not self._active.acquire(blocking=False):
            log.warning("Crawl already in progress – ignoring start request")
            return None
        try:
            log.info("Starting crawler for %s", self.config.base_url)
            self.phase = CrawlPhase.INITIALIZING
            self._initialize()

            self.phase = CrawlPhase.RUNNING
            aborted = False
            try:
                self._process_queue()
            except Exception:
                log.exception("[ERR] Crawl stopped by unexpected error")
                aborted = True

            self.phase = CrawlPhase.DRAINING
            log.info("Saving final results...")
            try:
                self._save_all()
            except StorageError as exc:
                log.error("[ERR] %s", exc)
                aborted = True

            return self._finish(aborted)
        finally:
            self.phase = CrawlPhase.TERMINATED
            self._active.release()

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def _initialize(self) -> None:
        cfg = self.config
        ensure_dir(cfg.states_dir)
        ensure_dir(cfg.results_dir)

        self.targets = load_targets(cfg.targets_file, cfg.target_column)
        log.info("Loaded %d target URLs to find", len(self.targets))

        if cfg.respect_robots:
            self.robots = RobotsPolicy.load(
                self.session, cfg.base_url, cfg.user_agent, timeout=cfg.timeout
            )
        else:
            log.info("robots.txt handling disabled")
            self.robots = RobotsPolicy.allow_all()

        state = self.state_store.load()
        self.frontier = Frontier(
            cfg.base_url,
            cfg.max_depth,
            is_allowed=self.robots.is_allowed,
            visited=state.visited_urls,
            queue=state.queue,
        )
        self.matches = MatchTracker(self.targets)
        restored = self.matches.restore(state.results)
        if restored:
            log.info("Restored %d previous match(es)", restored)
        self._stats = {"ok": 0, "err": 0, "skip": 0, "dup": 0}

        log.info("Results file     : %s", self.results.path.resolve())
        log.info("Max depth        : %d", cfg.max_depth)
        log.info("Max concurrent   : %d", cfg.max_concurrent)

        if self.frontier.seed(cfg.base_url):
            log.info("Starting from homepage")
        else:
            log.info("Resuming with %d queued URL(s)", len(self.frontier))

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def _process_queue(self) -> None:
        cfg = self.config
        bar = tqdm(
            desc="Crawling",
            unit="URL",
            dynamic_ncols=True,
            disable=not self.show_progress,
        )
        processed = 0
        try:
            with ThreadPoolExecutor(
                max_workers=cfg.max_concurrent, thread_name_prefix="fetch"
            ) as pool:
                while not self.frontier.is_empty() and not self.matches.all_found():
                    log.info("[QUEUE] %d URLs remaining", len(self.frontier))
                    batch = self.frontier.take_batch(cfg.max_concurrent)
                    accepted = self._accept(batch)
                    log.info("Processing batch of %d URLs", len(accepted))

                    futures = [pool.submit(self._process_entry, e) for e in accepted]
                    for fut in as_completed(futures):
                        fut.result()

                    self._save_state()

                    processed += len(batch)
                    bar.total = processed + len(self.frontier)
                    bar.update(len(batch))
                    bar.set_postfix(
                        queued=len(self.frontier),
                        found=f"{len(self.matches)}/{len(self.targets)}",
                    )
        finally:
            bar.close()

    def _accept(self, batch: list[FrontierEntry]) -> list[FrontierEntry]:
        """Mark every new entry of *batch* visited and return those that
        still need a fetch."""
        accepted: list[FrontierEntry] = []
        with self._lock:
            for entry in batch:
                if not self.frontier.mark_visited(entry.url):
                    log.debug("[SKIP] Already visited: %s", entry.url)
                    self._stats["dup"] += 1
                    continue
                if entry.depth > self.config.max_depth:
                    log.debug("[SKIP] %s – max depth reached", entry.url)
                    self._stats["skip"] += 1
                    continue
                if self.matches.all_found():
                    self._stats["skip"] += 1
                    continue
                accepted.append(entry)
        return accepted

    def _process_entry(self, entry: FrontierEntry) -> None:
        """Fetch one page and fold its links into the crawl state.

        Runs on a worker thread.  Only :meth:`_apply_links` mutates shared
        state, and it does so under the lock.
        """
        with self._lock:
            if self.matches.all_found():
                log.debug("[SKIP] %s – all targets already found", entry.url)
                self._stats["skip"] += 1
                return

        log.info("Crawling %s (depth: %d)", entry.url, entry.depth)
        try:
            page = self.fetcher.links(entry.url)
            if page is None:
                with self._lock:
                    self._stats["err"] += 1
                return
            final_url, links = page
            with self._lock:
                self._stats["ok"] += 1
                self._apply_links(entry, links, final_url)
        except StorageError:
            raise
        except Exception:
            log.exception("[ERR] Error crawling %s", entry.url)
            with self._lock:
                self._stats["err"] += 1
        finally:
            self._politeness_delay()

    def _apply_links(
        self, entry: FrontierEntry, links: list[str], final_url: str | None = None
    ) -> None:
        """Record matches and enqueue children for the links of one page.

        Links resolve against *final_url* (where redirects landed); matches
        are reported against the frontier URL.
        """
        page = entry.url
        resolve_base = final_url or page
        canonical = (normalize_url(raw, resolve_base) for raw in links)
        unique = list(dict.fromkeys(u for u in canonical if u is not None))

        new_matches = [u for u in unique if self.matches.record(u, page)]
        if new_matches:
            for target in new_matches:
                log.info("[MATCH] %s found on %s", target, page)
            log.info("Found %d new target URL(s) on %s (%d/%d)",
                     len(new_matches), page, len(self.matches), len(self.targets))
            self._save_all()
            if self.matches.all_found():
                log.info("[DONE] All target URLs have been found! Stopping crawl.")
                return

        if entry.depth >= self.config.max_depth or self.matches.all_found():
            return

        added = sum(self.frontier.try_enqueue(u, entry.depth + 1) for u in unique)
        log.debug("Found %d new URLs to crawl on %s", added, page)

    def _politeness_delay(self) -> None:
        delay = random.uniform(self.config.delay_min, self.config.delay_max)
        if delay > 0:
            log.debug("Waiting %d ms before next request...", round(delay * 1000))
            time.sleep(delay)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> CrawlState:
        with self._lock:
            return CrawlState(
                visited_urls=set(self.frontier.visited),
                queue=self.frontier.pending(),
                results=self.matches.records,
            )

    def _save_state(self) -> None:
        self.state_store.save(self.snapshot())

    def _save_results(self) -> None:
        with self._lock:
            records = self.matches.records
        log.info("[SAVE] Saving results to %s...", self.results.path)
        self.results.write(records)
        log.info("Current results: %d matches", len(records))

    def _save_all(self) -> None:
        with self._lock:
            self._save_results()
            self._save_state()

    def _finish(self, aborted: bool) -> CrawlReport:
        found, total = len(self.matches), len(self.targets)
        if aborted:
            status = "aborted"
        elif self.matches.all_found():
            status = "complete"
        else:
            status = "partial"

        report = CrawlReport(
            status=status,
            found=found,
            total=total,
            visited=len(self.frontier.visited),
            queued=len(self.frontier),
        )
        log.info(
            "Crawl finished. visited=%d  ok=%d  err=%d  skip=%d  dup=%d  queued=%d",
            report.visited,
            self._stats["ok"],
            self._stats["err"],
            self._stats["skip"],
            self._stats["dup"],
            report.queued,
        )
        if status == "complete":
            log.info("[DONE] Crawling completed successfully - all target URLs found!")
        elif status == "partial":
            log.info("Crawling completed. Found %d out of %d target URLs.", found, total)
        else:
            log.warning("Crawl aborted. Found %d out of %d target URLs.", found, total)
        return report
