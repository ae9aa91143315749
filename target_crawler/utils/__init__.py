"""Utility helpers for URL canonicalisation, robots.txt and logging."""

from target_crawler.utils.url import normalize_url, is_same_domain, safe_name
from target_crawler.utils.robots import RobotsPolicy
from target_crawler.utils.log import setup_logging, log

__all__ = [
    "normalize_url",
    "is_same_domain",
    "safe_name",
    "RobotsPolicy",
    "setup_logging",
    "log",
]
