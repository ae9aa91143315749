"""
robots.txt policy for the crawled host.
"""

import urllib.robotparser

import requests

from target_crawler.utils.log import log
from target_crawler.utils.url import origin


class RobotsPolicy:
    """Yes/no oracle for "may this URL be fetched".

    Built once per crawl.  A policy without parsed rules allows every URL.
    """

    def __init__(
        self,
        parser: urllib.robotparser.RobotFileParser | None,
        user_agent: str = "*",
    ) -> None:
        self._parser = parser
        self.user_agent = user_agent

    @classmethod
    def allow_all(cls) -> "RobotsPolicy":
        return cls(None)

    @classmethod
    def from_text(cls, text: str, robots_url: str, user_agent: str = "*") -> "RobotsPolicy":
        parser = urllib.robotparser.RobotFileParser()
        parser.set_url(robots_url)
        parser.parse(text.splitlines())
        return cls(parser, user_agent)

    @classmethod
    def load(
        cls,
        session: requests.Session,
        base_url: str,
        user_agent: str = "*",
        timeout: float = 30,
    ) -> "RobotsPolicy":
        """Fetch and parse ``{origin}/robots.txt``.

        Any failure degrades to :meth:`allow_all` with a warning.
        """
        robots_url = origin(base_url) + "/robots.txt"
        log.info("Loading robots.txt from %s", robots_url)
        try:
            resp = session.get(robots_url, timeout=timeout, allow_redirects=True)
        except requests.RequestException as exc:
            log.warning("[ROBOTS] Could not fetch %s – %s; allowing everything",
                        robots_url, exc)
            return cls.allow_all()

        if not resp.ok:
            log.warning("[ROBOTS] HTTP %s for %s; allowing everything",
                        resp.status_code, robots_url)
            return cls.allow_all()

        try:
            policy = cls.from_text(resp.text, robots_url, user_agent)
        except (ValueError, UnicodeError) as exc:
            log.warning("[ROBOTS] Could not parse %s – %s; allowing everything",
                        robots_url, exc)
            return cls.allow_all()

        log.info("Loaded robots.txt from %s", robots_url)
        return policy

    def is_allowed(self, url: str) -> bool:
        """Check if the URL is allowed by robots.txt."""
        if self._parser is None:
            return True
        return self._parser.can_fetch(self.user_agent, url)
