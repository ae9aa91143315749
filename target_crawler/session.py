"""
HTTP session creation and page fetching.

Provides sessions with:
* Automatic transport-level retry on 5xx errors
* A randomised browser User-Agent
* A connection pool sized for the crawl's batch width
"""

import random

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from target_crawler.config import HTML_TYPES, MAX_RETRIES, REQUEST_TIMEOUT, USER_AGENTS
from target_crawler.extraction.links import extract_links
from target_crawler.utils.log import log


def build_session(pool_size: int = 10) -> requests.Session:
    """Return a ``requests.Session`` with retry logic, keep-alive and a
    randomised User-Agent."""
    session = requests.Session()
    retry = Retry(
        total=MAX_RETRIES,
        backoff_factor=0.5,
        status_forcelist=[500, 502, 503, 504],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(
        max_retries=retry,
        pool_connections=pool_size,
        pool_maxsize=pool_size,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;q=0.9,"
            "*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "Connection": "keep-alive",
    })
    return session


class PageFetcher:
    """Fetches a page and returns the raw ``href`` values found in it,
    together with the URL the request finally landed on.

    Every failure (network error, non-2xx status, non-HTML body) yields
    ``None``; callers abandon the page.
    """

    def __init__(self, session: requests.Session, timeout: float = REQUEST_TIMEOUT) -> None:
        self.session = session
        self.timeout = timeout

    def fetch(self, url: str) -> tuple[str, str] | None:
        """GET *url* and return ``(final_url, html)``, or ``None``.

        ``final_url`` is where redirects ended up; relative links in the
        page resolve against it.
        """
        try:
            resp = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as exc:
            log.warning("[ERR] Request failed for %s – %s", url, exc)
            return None

        if not resp.ok:
            log.warning("[ERR] HTTP %s for %s – skipping", resp.status_code, url)
            return None

        content_type = resp.headers.get("Content-Type", "text/html")
        ct = content_type.split(";")[0].strip().lower()
        if ct not in HTML_TYPES:
            log.debug("[SKIP] %s is %s, not HTML", url, ct)
            return None

        final_url = resp.url or url
        if final_url != url:
            log.debug("  ↪ %s redirected to %s", url, final_url)
        log.debug("  ← HTTP %s  %d bytes", resp.status_code, len(resp.content))
        return final_url, resp.text

    def links(self, url: str) -> tuple[str, list[str]] | None:
        """Fetch *url* and return ``(final_url, hrefs)``; ``None`` on
        failure."""
        page = self.fetch(url)
        if page is None:
            return None
        final_url, html = page
        return final_url, extract_links(html)
