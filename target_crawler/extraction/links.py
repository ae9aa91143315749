"""
Hyperlink extraction from HTML pages.
"""

from bs4 import BeautifulSoup, SoupStrainer
from bs4.builder import ParserRejectedMarkup

from target_crawler.utils.log import log

_BS4_PARSER = "lxml"

# Parse only <a href> elements
_LINK_STRAINER = SoupStrainer("a", href=True)


def extract_links(html: str | bytes) -> list[str]:
    """
    Return the raw ``href`` value of every ``<a>`` element in *html*, in
    document order.  Values are not resolved or filtered; unparsable
    markup yields an empty list.
    """
    if not html:
        return []
    try:
        soup = BeautifulSoup(html, _BS4_PARSER, parse_only=_LINK_STRAINER)
    except ParserRejectedMarkup as exc:
        log.debug("Could not parse page: %s", exc)
        return []
    return [a["href"] for a in soup.find_all("a") if a.get("href")]
