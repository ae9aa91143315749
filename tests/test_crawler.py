"""
Tests for the crawl orchestrator: early termination, robots.txt
exclusion, depth limits, resume, de-duplication and failure handling.
"""

import json
import tempfile
import threading
import time
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests

from target_crawler.config import CrawlConfig
from target_crawler.core.crawler import Crawler, CrawlPhase
from target_crawler.core.frontier import Frontier, FrontierEntry
from target_crawler.core.matches import MatchRecord, MatchTracker
from target_crawler.core.state import CrawlState, StateStore
from target_crawler.core.storage import StorageError

BASE = "https://example.com/"


def u(path: str) -> str:
    return "https://example.com" + path


class FakeFetcher:
    """Serves canned link lists; ``None`` means the fetch failed.

    ``redirects`` maps a requested URL to the URL the response came from.
    ``on_fetch`` is called with each requested URL before it is served.
    """

    def __init__(self, pages, pause=0.0, redirects=None, on_fetch=None):
        self.pages = pages
        self.pause = pause
        self.redirects = redirects or {}
        self.on_fetch = on_fetch
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def links(self, url):
        with self._lock:
            self.calls.append(url)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.pause:
                time.sleep(self.pause)
            if self.on_fetch is not None:
                self.on_fetch(url)
            final_url = self.redirects.get(url, url)
            value = self.pages.get(final_url)
            if isinstance(value, Exception):
                raise value
            if value is None:
                return None
            return final_url, value
        finally:
            with self._lock:
                self.in_flight -= 1


def _robots_session(robots_txt=None):
    session = MagicMock()
    resp = MagicMock(spec=requests.Response)
    if robots_txt is None:
        resp.status_code, resp.ok, resp.text = 404, False, ""
    else:
        resp.status_code, resp.ok, resp.text = 200, True, robots_txt
    session.get.return_value = resp
    return session


class CrawlerTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def make_crawler(self, pages, targets, robots_txt=None, pause=0.0,
                     redirects=None, on_fetch=None, **overrides):
        targets_file = self.tmp / "targets.csv"
        targets_file.write_text(
            "Page URL\n" + "".join(f"{t}\n" for t in targets), encoding="utf-8"
        )
        options = dict(
            base_url=BASE,
            states_dir=self.tmp / "states",
            results_dir=self.tmp / "results",
            targets_file=targets_file,
            delay_min=0,
            delay_max=0,
        )
        options.update(overrides)
        config = CrawlConfig(**options)
        self.fetcher = FakeFetcher(pages, pause=pause, redirects=redirects,
                                   on_fetch=on_fetch)
        return Crawler(
            config,
            session=_robots_session(robots_txt),
            fetcher=self.fetcher,
            show_progress=False,
        )

    def read_state(self, crawler):
        return json.loads(crawler.state_store.path.read_text(encoding="utf-8"))


class TestEarlyTermination(CrawlerTestCase):
    def test_single_target_found_on_seed_page(self):
        crawler = self.make_crawler({BASE: ["/a", "/b"]}, [u("/a")])
        report = crawler.run()

        self.assertEqual(report.status, "complete")
        self.assertTrue(report.complete)
        self.assertEqual(crawler.matches.records, [MatchRecord(u("/a"), BASE)])
        self.assertEqual(self.fetcher.calls, [BASE])
        self.assertNotIn(u("/b"), [e["url"] for e in self.read_state(crawler)["queue"]])

    def test_results_file_written(self):
        crawler = self.make_crawler({BASE: ["/a"]}, [u("/a")])
        crawler.run()
        lines = crawler.results.path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(lines, ["Target URL,Found On", f"{u('/a')},{BASE}"])
        self.assertEqual(crawler.results.path.name, "https___example_com_.csv")

    def test_no_children_enqueued_once_all_found_mid_batch(self):
        pages = {
            BASE: ["/a", "/b"],
            u("/a"): ["/t", "/a2"],
            u("/b"): ["/b2"],
        }
        crawler = self.make_crawler(pages, [u("/t")], max_concurrent=2)
        report = crawler.run()

        self.assertEqual(report.status, "complete")
        self.assertNotIn(u("/a2"), self.fetcher.calls)
        self.assertNotIn(u("/b2"), self.fetcher.calls)
        queued = [e["url"] for e in self.read_state(crawler)["queue"]]
        self.assertNotIn(u("/a2"), queued)

    def test_query_and_fragment_ignored_when_matching(self):
        crawler = self.make_crawler({BASE: ["/a?ref=nav#top"]}, [u("/a")])
        report = crawler.run()
        self.assertEqual(report.status, "complete")

    def test_target_on_other_domain_still_matches(self):
        crawler = self.make_crawler({BASE: ["https://partner.org/page"]},
                                    ["https://partner.org/page"])
        self.assertEqual(crawler.run().status, "complete")

    def test_empty_target_set_fetches_nothing(self):
        crawler = self.make_crawler({BASE: ["/a"]}, [])
        report = crawler.run()
        self.assertEqual(report.status, "complete")
        self.assertEqual(self.fetcher.calls, [])


class TestScope(CrawlerTestCase):
    def test_robots_disallowed_link_never_enqueued(self):
        pages = {
            BASE: ["/private/page", "/public"],
            u("/private/page"): ["/t"],
            u("/public"): [],
        }
        crawler = self.make_crawler(
            pages, [u("/t")], robots_txt="User-agent: *\nDisallow: /private/\n"
        )
        report = crawler.run()

        self.assertEqual(report.status, "partial")
        self.assertEqual(report.found, 0)
        self.assertNotIn(u("/private/page"), self.fetcher.calls)
        self.assertIn(u("/public"), self.fetcher.calls)

    def test_robots_ignored_when_disabled(self):
        pages = {BASE: ["/private/page"], u("/private/page"): ["/t"]}
        crawler = self.make_crawler(
            pages, [u("/t")], robots_txt="User-agent: *\nDisallow: /private/\n",
            respect_robots=False,
        )
        self.assertEqual(crawler.run().status, "complete")

    def test_external_links_not_followed(self):
        pages = {BASE: ["https://other.com/x", "https://sub.example.com/y"]}
        crawler = self.make_crawler(pages, [u("/t")])
        crawler.run()
        self.assertEqual(self.fetcher.calls, [BASE])

    def test_max_depth_zero_fetches_only_seed(self):
        crawler = self.make_crawler({BASE: ["/a", "/b"]}, [u("/t")], max_depth=0)
        report = crawler.run()

        self.assertEqual(report.status, "partial")
        self.assertEqual(self.fetcher.calls, [BASE])
        self.assertEqual(report.queued, 0)
        self.assertEqual(self.read_state(crawler)["queue"], [])

    def test_depth_limit(self):
        pages = {
            BASE: ["/d1"],
            u("/d1"): ["/d2"],
            u("/d2"): ["/d3"],
            u("/d3"): ["/t"],
        }
        crawler = self.make_crawler(pages, [u("/t")], max_depth=2)
        report = crawler.run()
        self.assertEqual(report.status, "partial")
        self.assertEqual(self.fetcher.calls, [BASE, u("/d1"), u("/d2")])

    def test_batch_width_bounds_concurrency(self):
        pages = {BASE: [f"/p{i}" for i in range(10)]}
        pages.update({u(f"/p{i}"): [] for i in range(10)})
        crawler = self.make_crawler(pages, [u("/t")], pause=0.02, max_concurrent=3)
        crawler.run()
        self.assertEqual(len(self.fetcher.calls), 11)
        self.assertLessEqual(self.fetcher.max_in_flight, 3)


class TestDeduplication(CrawlerTestCase):
    def test_duplicate_links_on_one_page_enqueued_once(self):
        crawler = self.make_crawler({}, [u("/t")])
        crawler.frontier = Frontier(BASE, 3)
        crawler.matches = MatchTracker({u("/t")})
        crawler._apply_links(FrontierEntry(BASE, 0), ["/x", "/x", "/x?y=1", "/x#z"])
        self.assertEqual(crawler.frontier.pending(), [FrontierEntry(u("/x"), 1)])

    def test_url_linked_from_two_pages_fetched_once(self):
        pages = {
            BASE: ["/a", "/b"],
            u("/a"): ["/c"],
            u("/b"): ["/c"],
            u("/c"): [],
        }
        crawler = self.make_crawler(pages, [u("/t")])
        crawler.run()
        self.assertEqual(self.fetcher.calls.count(u("/c")), 1)
        self.assertGreaterEqual(crawler.stats["dup"], 1)

    def test_self_link_not_refetched(self):
        crawler = self.make_crawler({BASE: ["/", BASE]}, [u("/t")])
        crawler.run()
        self.assertEqual(self.fetcher.calls, [BASE])

    def test_target_recorded_once(self):
        pages = {BASE: ["/a", "/b"], u("/a"): ["/t"], u("/b"): ["/t"]}
        crawler = self.make_crawler(pages, [u("/t"), u("/never")])
        crawler.run()
        self.assertEqual([r.target_url for r in crawler.matches.records], [u("/t")])


class TestCanonicalHosts(CrawlerTestCase):
    def test_host_case_and_default_port_fetched_once(self):
        pages = {
            BASE: ["/x", "https://EXAMPLE.com/x", "https://example.com:443/x"],
            u("/x"): [],
        }
        crawler = self.make_crawler(pages, [u("/t")])
        crawler.run()
        self.assertEqual(self.fetcher.calls, [BASE, u("/x")])
        self.assertEqual(crawler.stats["dup"], 0)

    def test_link_with_other_host_case_matches_target(self):
        crawler = self.make_crawler({BASE: ["https://Example.com/a"]}, [u("/a")])
        report = crawler.run()
        self.assertEqual(report.status, "complete")
        self.assertEqual(crawler.matches.records, [MatchRecord(u("/a"), BASE)])

    def test_target_with_default_port_matches_plain_link(self):
        crawler = self.make_crawler({BASE: ["/a"]}, ["https://EXAMPLE.com:443/a"])
        self.assertEqual(crawler.run().status, "complete")


class TestRedirects(CrawlerTestCase):
    def test_relative_links_resolve_against_final_url(self):
        pages = {BASE: ["/old"], u("/blog/post"): ["next"]}
        crawler = self.make_crawler(
            pages, [u("/blog/next")], redirects={u("/old"): u("/blog/post")}
        )
        report = crawler.run()
        self.assertEqual(report.status, "complete")
        self.assertEqual(crawler.matches.records,
                         [MatchRecord(u("/blog/next"), u("/old"))])

    def test_off_site_redirect_does_not_pull_in_links(self):
        pages = {
            BASE: ["/moved"],
            "https://other.com/landing": ["/deep"],
            u("/deep"): ["/t"],
        }
        crawler = self.make_crawler(
            pages, [u("/t"), u("/deep")],
            redirects={u("/moved"): "https://other.com/landing"},
        )
        report = crawler.run()
        self.assertEqual(report.status, "partial")
        self.assertEqual(report.found, 0)
        self.assertEqual(self.fetcher.calls, [BASE, u("/moved")])
        self.assertEqual(self.read_state(crawler)["queue"], [])


class TestPersistOnMatch(CrawlerTestCase):
    def test_match_on_disk_before_next_page_is_fetched(self):
        on_disk = {}

        def read_files(url):
            if url == u("/next"):
                on_disk["csv"] = crawler.results.path.read_text(
                    encoding="utf-8").splitlines()
                on_disk["state"] = self.read_state(crawler)

        pages = {BASE: ["/t", "/next"], u("/t"): [], u("/next"): []}
        crawler = self.make_crawler(
            pages, [u("/t"), u("/never")], on_fetch=read_files, max_concurrent=1
        )
        crawler.run()

        self.assertEqual(on_disk["csv"], ["Target URL,Found On", f"{u('/t')},{BASE}"])
        self.assertEqual(on_disk["state"]["results"],
                         [{"targetUrl": u("/t"), "foundOn": BASE}])
        self.assertIn(BASE, on_disk["state"]["visitedUrls"])

    def test_match_saved_by_worker_before_batch_save(self):
        crawler = self.make_crawler(
            {BASE: ["/t"]}, [u("/t"), u("/never")], max_concurrent=1, max_depth=0
        )
        saves = []
        save_state = crawler.state_store.save
        write_results = crawler.results.write

        def recording_save(state):
            saves.append(("state", threading.current_thread().name, len(state.results)))
            save_state(state)

        def recording_write(records):
            records = list(records)
            saves.append(("results", threading.current_thread().name, len(records)))
            return write_results(records)

        crawler.state_store.save = recording_save
        crawler.results.write = recording_write
        crawler.run()

        # Per-match save on the worker, then batch save, then final save.
        self.assertEqual([(kind, n) for kind, _, n in saves], [
            ("results", 1), ("state", 1), ("state", 1), ("results", 1), ("state", 1),
        ])
        self.assertTrue(saves[0][1].startswith("fetch"))
        self.assertTrue(saves[1][1].startswith("fetch"))
        self.assertFalse(saves[2][1].startswith("fetch"))


class TestResume(CrawlerTestCase):
    def test_resume_does_not_reseed_or_refetch(self):
        crawler = self.make_crawler({u("/c"): ["/a"], BASE: ["/a"]}, [u("/a")])
        (self.tmp / "states").mkdir()
        StateStore(self.tmp / "states", BASE).save(CrawlState(
            visited_urls={BASE, u("/b")},
            queue=[FrontierEntry(u("/b"), 1), FrontierEntry(u("/c"), 1)],
        ))

        report = crawler.run()

        self.assertEqual(report.status, "complete")
        self.assertEqual(self.fetcher.calls, [u("/c")])
        self.assertEqual(crawler.matches.records, [MatchRecord(u("/a"), u("/c"))])

    def test_resume_keeps_previous_matches(self):
        crawler = self.make_crawler({u("/c"): ["/t2"]}, [u("/t1"), u("/t2")])
        (self.tmp / "states").mkdir()
        StateStore(self.tmp / "states", BASE).save(CrawlState(
            visited_urls={BASE},
            queue=[FrontierEntry(u("/c"), 1)],
            results=[MatchRecord(u("/t1"), BASE)],
        ))

        report = crawler.run()

        self.assertEqual(report.status, "complete")
        self.assertEqual(crawler.matches.records, [
            MatchRecord(u("/t1"), BASE),
            MatchRecord(u("/t2"), u("/c")),
        ])

    def test_state_saved_after_partial_run(self):
        crawler = self.make_crawler({BASE: ["/a"], u("/a"): []}, [u("/t")])
        crawler.run()
        state = self.read_state(crawler)
        self.assertEqual(set(state["visitedUrls"]), {BASE, u("/a")})
        self.assertEqual(state["queue"], [])
        self.assertEqual(state["results"], [])

    def test_second_run_on_finished_state_fetches_nothing(self):
        pages = {BASE: ["/a"], u("/a"): []}
        crawler = self.make_crawler(pages, [u("/t")])
        crawler.run()
        self.fetcher.calls.clear()

        report = crawler.run()
        # The empty queue is re-seeded, but the base URL is already visited.
        self.assertEqual(self.fetcher.calls, [])
        self.assertEqual(report.status, "partial")


class TestFailures(CrawlerTestCase):
    def test_failed_fetch_is_abandoned(self):
        pages = {
            BASE: ["/broken", "/ok"],
            u("/broken"): None,
            u("/ok"): ["/t"],
        }
        crawler = self.make_crawler(pages, [u("/t")])
        report = crawler.run()
        self.assertEqual(report.status, "complete")
        self.assertEqual(crawler.matches.records, [MatchRecord(u("/t"), u("/ok"))])
        self.assertEqual(crawler.stats["err"], 1)

    def test_unexpected_worker_error_is_abandoned(self):
        pages = {
            BASE: ["/boom", "/ok"],
            u("/boom"): RuntimeError("parser exploded"),
            u("/ok"): ["/t"],
        }
        crawler = self.make_crawler(pages, [u("/t")])
        with self.assertLogs("target-crawler", level="ERROR"):
            report = crawler.run()
        self.assertEqual(report.status, "complete")

    def test_unwritable_states_dir_is_fatal(self):
        blocker = self.tmp / "states"
        blocker.write_text("not a directory", encoding="utf-8")
        crawler = self.make_crawler({BASE: []}, [u("/t")])
        with self.assertRaises(StorageError):
            crawler.run()
        self.assertEqual(self.fetcher.calls, [])
        self.assertEqual(crawler.phase, CrawlPhase.TERMINATED)


class TestLifecycle(CrawlerTestCase):
    def test_phase_transitions(self):
        crawler = self.make_crawler({BASE: []}, [u("/t")])
        self.assertEqual(crawler.phase, CrawlPhase.IDLE)
        seen = []
        original = crawler._process_queue

        def spy():
            seen.append(crawler.phase)
            original()

        crawler._process_queue = spy
        crawler.run()
        self.assertEqual(seen, [CrawlPhase.RUNNING])
        self.assertEqual(crawler.phase, CrawlPhase.TERMINATED)

    def test_reentrant_run_is_rejected(self):
        crawler = self.make_crawler({BASE: []}, [u("/t")])
        crawler._active.acquire()
        try:
            self.assertIsNone(crawler.run())
        finally:
            crawler._active.release()
        self.assertEqual(self.fetcher.calls, [])

    def test_loop_error_reports_aborted(self):
        crawler = self.make_crawler({BASE: []}, [u("/t")])

        def explode():
            raise RuntimeError("loop failure")

        crawler._process_queue = explode
        with self.assertLogs("target-crawler", level="ERROR"):
            report = crawler.run()
        self.assertEqual(report.status, "aborted")
        self.assertTrue(crawler.state_store.path.exists())


if __name__ == "__main__":
    unittest.main()
