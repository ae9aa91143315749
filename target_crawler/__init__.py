"""
target_crawler
==============
Finds, within one website, the pages that link to a fixed set of target
URLs and records where each target was first seen.

Package structure
-----------------
target_crawler/
├── __init__.py       – package init and public API
├── __main__.py       – ``python -m target_crawler``
├── config.py         – defaults and the validated ``CrawlConfig``
├── session.py        – requests.Session factory and ``PageFetcher``
├── cli.py            – argparse CLI
├── core/             – orchestrator, frontier, matches, state, storage
├── extraction/       – ``<a href>`` extraction via BeautifulSoup
└── utils/            – URL canonicalisation, robots.txt, logging

Quick start
-----------
    from target_crawler import Crawler, CrawlConfig

    config = CrawlConfig(base_url="https://example.com",
                         targets_file="targets.csv")
    report = Crawler(config).run()
    print(report.status, report.found, report.total)
"""

from target_crawler.config import CrawlConfig, ConfigError
from target_crawler.core.crawler import Crawler, CrawlReport

__version__ = "1.0.0"
__all__ = ["Crawler", "CrawlConfig", "CrawlReport", "ConfigError"]
