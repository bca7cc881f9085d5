"""Shared fixtures: canned feeds and a fake HTTP transport."""

from __future__ import annotations

from typing import Callable, Union

import httpx
import pytest

from feed_ingest.fetch.discovery import FeedDiscoverer
from feed_ingest.fetch.fetcher import HttpFetcher
from feed_ingest.fetch.parser import FeedParser
from feed_ingest.store.memory import MemoryStore


Route = Union[str, bytes, int, Exception, Callable[[httpx.Request], httpx.Response]]


def rss_document(title: str, links: list[str], extra_items: str = "") -> str:
    items = "".join(
        f"""
        <item>
          <title>Post {i}</title>
          <link>{link}</link>
          <description>Summary {i}</description>
          <pubDate>Mon, 06 Jan 2025 {10 + i % 10:02d}:00:00 GMT</pubDate>
        </item>"""
        for i, link in enumerate(links)
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>{title}</title>
    <link>https://example.com/</link>
    <description>Test feed</description>{items}{extra_items}
  </channel>
</rss>
"""


def make_transport(routes: dict[str, Route]) -> httpx.MockTransport:
    """Build a MockTransport from a URL -> response table.

    A str/bytes value is served with status 200, an int is served as an
    empty response with that status, an exception instance is raised,
    and a callable gets the request and returns the response. Unknown
    URLs get 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route) and not isinstance(route, Exception):
            return route(request)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, int):
            return httpx.Response(route)
        return httpx.Response(200, content=route if isinstance(route, bytes) else route.encode("utf-8"))

    return httpx.MockTransport(handler)


class FakeWeb:
    """Mutable route table wired into a fetcher, parser and discoverer."""

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []
        self.client = httpx.Client(
            transport=httpx.MockTransport(self._handle),
            headers={"User-Agent": "Mozilla/5.0 (compatible; RSSReader/1.0)"},
            timeout=10.0,
        )
        self.fetcher = HttpFetcher(self.client)
        self.parser = FeedParser(self.fetcher)
        self.discoverer = FeedDiscoverer(self.fetcher)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return make_transport(self.routes).handle_request(request)


@pytest.fixture
def web():
    fake = FakeWeb()
    yield fake
    fake.client.close()


@pytest.fixture
def store():
    return MemoryStore()
