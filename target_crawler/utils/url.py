"""
URL canonicalisation helpers.

A canonical URL is absolute, has no query string and no fragment.  It is
the identity key for visited pages, frontier entries and targets.
"""

import re
import urllib.parse

_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9]")
_CRAWLABLE_SCHEMES = ("http", "https")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(raw: str, base: str) -> str | None:
    """
    Resolve *raw* against *base* and strip the query string and fragment.

    Returns ``None`` for empty or unparsable input and for anything that
    is not an http(s) URL (``mailto:``, ``javascript:``, ``data:`` ...).
    """
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    try:
        joined = urllib.parse.urljoin(base, raw)
        parsed = urllib.parse.urlsplit(joined)
        # Accessing .port validates the netloc (raises on "host:abc").
        parsed.port
    except ValueError:
        return None

    if parsed.scheme.lower() not in _CRAWLABLE_SCHEMES or not parsed.hostname:
        return None

    scheme = parsed.scheme.lower()
    path = parsed.path or "/"
    netloc = _canonical_netloc(parsed, scheme)
    return urllib.parse.urlunsplit((scheme, netloc, path, "", ""))


def _canonical_netloc(parsed: urllib.parse.SplitResult, scheme: str) -> str:
    """Lower-cased host, userinfo kept, default port dropped."""
    host = parsed.hostname
    if ":" in host:
        host = f"[{host}]"
    port = parsed.port
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    userinfo, sep, _ = parsed.netloc.rpartition("@")
    return f"{userinfo}@{host}" if sep else host


def hostname(url: str) -> str | None:
    """Lower-cased hostname of *url*, or ``None`` when it has none."""
    try:
        return urllib.parse.urlsplit(url).hostname
    except ValueError:
        return None


def is_same_domain(url: str, base: str) -> bool:
    """True when *url* (resolved against *base*) has exactly *base*'s host.

    Subdomains are different hosts: ``blog.example.com`` is not
    ``example.com``.
    """
    try:
        resolved = urllib.parse.urljoin(base, url)
    except ValueError:
        return False
    host = hostname(resolved)
    return host is not None and host == hostname(base)


def origin(url: str) -> str:
    """``scheme://netloc`` of *url*."""
    parsed = urllib.parse.urlsplit(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def safe_name(url: str) -> str:
    """Filesystem-safe key for *url*: every non-alphanumeric character
    becomes ``_``."""
    return _UNSAFE_RE.sub("_", url)
