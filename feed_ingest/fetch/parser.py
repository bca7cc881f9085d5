"""
RSS/Atom parsing into ParsedFeed records.

Grammar handling is left to feedparser. This module fetches the document
through the shared HttpFetcher (same timeout discipline as discovery) and
maps feedparser entries onto ParsedItem fields:

- content_encoded: first entry content block (RSS content:encoded, Atom content)
- content: entry summary (RSS description, Atom summary)
- content_snippet: plain text of whichever body is present
- iso_date: published/updated date normalized to ISO 8601 UTC
- pub_date: published/updated date string as written in the feed
"""

from __future__ import annotations

from datetime import datetime, timezone
import io
import logging
import time
from typing import Any

from bs4 import BeautifulSoup
import feedparser  # type: ignore

from ..core.types import ParsedFeed, ParsedItem
from ..errors import ParseError
from .fetcher import HttpFetcher


logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*;q=0.8"


class FeedParser:
    """Fetches and parses feeds by URL."""

    def __init__(self, fetcher: HttpFetcher):
        self.fetcher = fetcher

    def parse_url(self, url: str) -> ParsedFeed:
        """Fetch and parse the feed at ``url``.

        Raises:
            FetchError: Network failure, non-2xx status or timeout
            ParseError: The body is not a recognizable RSS/Atom document
        """
        result = self.fetcher.get(url, accept=FEED_ACCEPT)
        headers = {"content-type": result.content_type} if result.content_type else None
        return parse_feed(result.content, source=url, response_headers=headers)


def parse_feed(
    content: bytes | str,
    source: str = "<string>",
    response_headers: dict[str, str] | None = None,
) -> ParsedFeed:
    """Parse a feed document already in memory.

    Args:
        content: Raw feed body
        source: Where the body came from, used in error messages
        response_headers: Optional HTTP headers, used by feedparser for charset

    Returns:
        ParsedFeed with items in source order

    Raises:
        ParseError: If feedparser finds neither a feed version nor any entries
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    # A stream keeps feedparser from treating the body as a URL or filename
    parsed = feedparser.parse(io.BytesIO(content), response_headers=response_headers or {})
    if not parsed.get("version") and not parsed.entries:
        exc = parsed.get("bozo_exception")
        detail = f": {exc}" if exc else ""
        raise ParseError(f"Not a valid RSS/Atom feed at {source}{detail}")

    if parsed.get("bozo"):
        logger.debug("Feed at %s is not well-formed: %s", source, parsed.get("bozo_exception"))

    feed_meta = parsed.get("feed", {})
    return ParsedFeed(
        title=(feed_meta.get("title") or "").strip(),
        link=feed_meta.get("link"),
        items=[_to_item(entry) for entry in parsed.entries],
    )


def _to_item(entry: Any) -> ParsedItem:
    content_encoded = ""
    blocks = entry.get("content") or []
    if blocks:
        content_encoded = blocks[0].get("value", "") or ""
    content = entry.get("summary", "") or ""

    return ParsedItem(
        title=(entry.get("title") or "").strip(),
        link=(entry.get("link") or "").strip(),
        content=content,
        content_encoded=content_encoded,
        content_snippet=_snippet(content_encoded or content),
        iso_date=_iso_date(entry.get("published_parsed") or entry.get("updated_parsed")),
        pub_date=entry.get("published") or entry.get("updated"),
    )


def _snippet(html: str) -> str:
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(separator=" ")
    return " ".join(text.split())


def _iso_date(value: time.struct_time | None) -> str | None:
    if not value:
        return None
    try:
        return datetime(*value[:6], tzinfo=timezone.utc).isoformat()
    except (TypeError, ValueError):
        return None
