"""
Feed discovery: turn a site URL into a machine-readable feed URL.

Discovery is an ordered chain of strategies. Each strategy takes the
normalized URL and either returns a feed URL or None ("skip, ask the next
one"). The first strategy that returns a URL wins and nothing after it
runs:

1. direct_pattern_rule: the URL already points at a feed (/feed.xml, /rss.xml,
   /atom.xml, /feed)
2. platform_rule: well-known hosts whose feed location is predictable
   (Substack, Medium, Blogspot)
3. FeedDiscoverer.scrape: fetch the page and read its <link> feed hints

Cheap string checks come first so the network is only touched when needed.
The scrape step never skips: it returns a URL or raises, so it is always
the last strategy in the chain.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Sequence
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from ..core.urls import normalize_url
from ..errors import FeedNotFound
from .fetcher import HttpFetcher


logger = logging.getLogger(__name__)

Strategy = Callable[[str], "str | None"]

DIRECT_FEED_RE = re.compile(r"(/(feed|rss|atom)\.xml|/feed/?)$", re.IGNORECASE)

# Host substring -> path builder, checked in order
PLATFORM_RULES: list[tuple[str, Callable[[str], str]]] = [
    ("substack.com", lambda path: "/feed"),
    ("medium.com", lambda path: f"/feed{path}"),
    ("blogspot.com", lambda path: "/feeds/posts/default"),
]

FEED_LINK_TYPES = ("application/rss+xml", "application/atom+xml")

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def direct_pattern_rule(url: str) -> str | None:
    """Return the URL itself when its path already looks like a feed."""
    path = urlsplit(url).path
    if DIRECT_FEED_RE.search(path):
        return url
    return None


def platform_rule(url: str) -> str | None:
    """Rewrite URLs on known blogging platforms to their feed location.

    Examples:
        >>> platform_rule("https://x.substack.com/p/post")
        'https://x.substack.com/feed'
        >>> platform_rule("https://medium.com/@someone")
        'https://medium.com/feed/@someone'
    """
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    for marker, build_path in PLATFORM_RULES:
        if marker in host:
            return urljoin(url, build_path(parts.path))
    return None


def find_feed_link(html: str, page_url: str) -> str | None:
    """Find the feed advertised by an HTML page.

    Looks for <link type="application/rss+xml" href=...> first and only
    then for application/atom+xml. Relative hrefs are resolved against
    ``page_url``.

    Args:
        html: Page markup
        page_url: URL the page was requested from

    Returns:
        Absolute feed URL, or None if the page advertises no feed
    """
    soup = BeautifulSoup(html, "html.parser")
    for feed_type in FEED_LINK_TYPES:
        for tag in soup.find_all("link"):
            if (tag.get("type") or "").strip().lower() != feed_type:
                continue
            href = (tag.get("href") or "").strip()
            if not href:
                continue
            try:
                return urljoin(page_url, href)
            except ValueError:
                logger.debug("Skipping malformed feed href %r on %s", href, page_url)
    return None


class FeedDiscoverer:
    """Resolves site URLs to feed URLs through an ordered strategy chain.

    Args:
        fetcher: HTTP fetcher used by the scrape fallback
        strategies: Optional replacement for the cheap, offline strategies;
            the scrape fallback is always appended last
    """

    def __init__(self, fetcher: HttpFetcher, strategies: Sequence[Strategy] | None = None):
        self.fetcher = fetcher
        offline = list(strategies) if strategies is not None else [direct_pattern_rule, platform_rule]
        self.strategies: list[Strategy] = offline + [self.scrape]

    def discover(self, raw_url: str) -> str:
        """Return the feed URL for a site or feed address.

        Raises:
            InvalidURL: Input cannot be normalized to an http(s) URL
            FetchError: The scrape request failed or timed out
            FeedNotFound: The page advertises no feed
        """
        url = normalize_url(raw_url)
        for strategy in self.strategies:
            feed_url = strategy(url)
            if feed_url is not None:
                logger.debug(
                    "Discovered %s via %s", feed_url, getattr(strategy, "__name__", strategy)
                )
                return feed_url
        raise FeedNotFound(f"No RSS feed link found on the page: {url}")

    def scrape(self, url: str) -> str:
        """Fetch the page and pull the feed URL from its <link> tags."""
        result = self.fetcher.get(url, accept=HTML_ACCEPT)
        feed_url = find_feed_link(result.text, url)
        if feed_url is None:
            raise FeedNotFound(f"No RSS feed link found on the page: {url}")
        return feed_url
