"""
Command-line interface for the target link crawler.
"""

import argparse
import logging
import sys
import time

from target_crawler.config import (
    DEFAULT_DELAY_MAX, DEFAULT_DELAY_MIN, DEFAULT_MAX_CONCURRENT,
    DEFAULT_MAX_DEPTH, DEFAULT_RESULTS_DIR, DEFAULT_STATES_DIR,
    DEFAULT_TARGET_COLUMN, DEFAULT_TARGETS_FILE, REQUEST_TIMEOUT,
    ConfigError, CrawlConfig,
)
from target_crawler.core.crawler import Crawler
from target_crawler.core.storage import StorageError
from target_crawler.core.targets import TargetSourceError
from target_crawler.utils.log import log, setup_logging

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_FATAL = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Find the pages of a website that link to a list of "
                    "target URLs. Resumable, depth-bounded BFS crawl.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m target_crawler https://example.com\n"
            "  python -m target_crawler example.com --depth 2 --concurrency 3\n"
            "  python -m target_crawler https://example.com --targets errors.csv\n"
        ),
    )
    parser.add_argument(
        "url",
        help="Base URL of the site to crawl (e.g. https://example.com)",
    )
    parser.add_argument(
        "--concurrency", type=int, default=DEFAULT_MAX_CONCURRENT, metavar="N",
        help=f"Pages fetched concurrently per batch (default: {DEFAULT_MAX_CONCURRENT})",
    )
    parser.add_argument(
        "--depth", type=int, default=DEFAULT_MAX_DEPTH,
        help=f"Maximum crawl depth (default: {DEFAULT_MAX_DEPTH})",
    )
    parser.add_argument(
        "--states-dir", default=DEFAULT_STATES_DIR,
        help=f"Directory for resumable state files (default: {DEFAULT_STATES_DIR})",
    )
    parser.add_argument(
        "--results-dir", default=DEFAULT_RESULTS_DIR,
        help=f"Directory for result CSV files (default: {DEFAULT_RESULTS_DIR})",
    )
    parser.add_argument(
        "--targets", default=DEFAULT_TARGETS_FILE, metavar="CSV",
        help=f"CSV file listing the target URLs (default: {DEFAULT_TARGETS_FILE})",
    )
    parser.add_argument(
        "--target-column", default=DEFAULT_TARGET_COLUMN, metavar="NAME",
        help=f"CSV column holding the target URL (default: {DEFAULT_TARGET_COLUMN!r})",
    )
    parser.add_argument(
        "--min-delay", type=float, default=DEFAULT_DELAY_MIN, metavar="SECONDS",
        help=f"Lower bound of the per-page politeness delay (default: {DEFAULT_DELAY_MIN})",
    )
    parser.add_argument(
        "--max-delay", type=float, default=DEFAULT_DELAY_MAX, metavar="SECONDS",
        help=f"Upper bound of the per-page politeness delay (default: {DEFAULT_DELAY_MAX})",
    )
    parser.add_argument(
        "--timeout", type=float, default=REQUEST_TIMEOUT,
        help=f"HTTP request timeout in seconds (default: {REQUEST_TIMEOUT})",
    )
    parser.add_argument(
        "--no-robots", dest="respect_robots", action="store_false", default=True,
        help="Ignore robots.txt restrictions",
    )
    parser.add_argument(
        "--no-progress", dest="show_progress", action="store_false", default=True,
        help="Disable the progress bar",
    )
    parser.add_argument(
        "--debug", action="store_true",
        help="Enable verbose debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Write detailed logs to this file (always at DEBUG level)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    return CrawlConfig(
        base_url=args.url,
        max_concurrent=args.concurrency,
        max_depth=args.depth,
        states_dir=args.states_dir,
        results_dir=args.results_dir,
        targets_file=args.targets,
        target_column=args.target_column,
        delay_min=args.min_delay,
        delay_max=args.max_delay,
        timeout=args.timeout,
        respect_robots=args.respect_robots,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    setup_logging(debug=args.debug, log_file=args.log_file)

    if args.debug:
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    try:
        config = build_config(args)
    except ConfigError as exc:
        log.error("Invalid configuration: %s", exc)
        return EXIT_FATAL

    crawler = Crawler(config, show_progress=args.show_progress and sys.stderr.isatty())

    t0 = time.monotonic()
    try:
        report = crawler.run()
    except (StorageError, TargetSourceError) as exc:
        log.error("[ERR] Cannot start crawl: %s", exc)
        return EXIT_FATAL
    elapsed = time.monotonic() - t0
    log.info("Total elapsed time: %.1f s", elapsed)

    if report is None or report.status == "aborted":
        return EXIT_ABORTED
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
