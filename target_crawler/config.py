"""
Configuration for the target link crawler.
"""

from dataclasses import dataclass
from pathlib import Path

from target_crawler.utils.url import normalize_url

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_MAX_CONCURRENT = 5
DEFAULT_MAX_DEPTH = 3
DEFAULT_STATES_DIR = "./states"
DEFAULT_RESULTS_DIR = "./results"
DEFAULT_TARGETS_FILE = "hreflang-errors.csv"
DEFAULT_TARGET_COLUMN = "Page URL"

# Politeness delay range (seconds), drawn per processed page
DEFAULT_DELAY_MIN = 0.2
DEFAULT_DELAY_MAX = 1.0

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
REQUEST_TIMEOUT = 30
MAX_RETRIES = 3

# Agent name matched against robots.txt ``User-agent`` groups
ROBOTS_USER_AGENT = "Crawler"

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:133.0) Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.6 Safari/605.1.15",
]

# Content types whose body is parsed for links
HTML_TYPES = frozenset({
    "text/html",
    "application/xhtml+xml",
})


class ConfigError(ValueError):
    """Raised for an invalid crawl configuration value."""


@dataclass
class CrawlConfig:
    """Validated settings for one crawl.

    ``base_url`` is canonicalised on construction, so
    ``https://example.com`` becomes ``https://example.com/``.
    """

    base_url: str
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    max_depth: int = DEFAULT_MAX_DEPTH
    states_dir: Path = Path(DEFAULT_STATES_DIR)
    results_dir: Path = Path(DEFAULT_RESULTS_DIR)
    targets_file: Path = Path(DEFAULT_TARGETS_FILE)
    target_column: str = DEFAULT_TARGET_COLUMN
    delay_min: float = DEFAULT_DELAY_MIN
    delay_max: float = DEFAULT_DELAY_MAX
    timeout: float = REQUEST_TIMEOUT
    respect_robots: bool = True
    user_agent: str = ROBOTS_USER_AGENT

    def __post_init__(self) -> None:
        raw = (self.base_url or "").strip()
        if raw and "://" not in raw:
            raw = "https://" + raw
        canonical = normalize_url(raw, raw) if raw else None
        if canonical is None:
            raise ConfigError(f"Invalid base URL: {self.base_url!r}")
        self.base_url = canonical

        if self.max_concurrent < 1:
            raise ConfigError(f"max_concurrent must be >= 1, got {self.max_concurrent}")
        if self.max_depth < 0:
            raise ConfigError(f"max_depth must be >= 0, got {self.max_depth}")
        if not self.target_column:
            raise ConfigError("target_column must not be empty")
        if self.delay_min < 0 or self.delay_max < self.delay_min:
            raise ConfigError(
                f"Invalid delay range {self.delay_min}–{self.delay_max} s"
            )
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be > 0, got {self.timeout}")

        self.states_dir = Path(self.states_dir)
        self.results_dir = Path(self.results_dir)
        self.targets_file = Path(self.targets_file)
