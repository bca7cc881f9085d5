"""Tests for the refresh scheduler, add-feed flow and refresh trigger."""

from __future__ import annotations

import httpx
import pytest

from feed_ingest.config import AppConfig
from feed_ingest.errors import (
    DuplicateFeed,
    FeedNotFound,
    InvalidURL,
    ParseError,
    PersistenceError,
    Unauthorized,
)
from feed_ingest.runner import (
    add_feed,
    ingest_newsletter,
    open_pipeline,
    refresh_feeds,
    trigger_refresh,
)
from feed_ingest.store.memory import MemoryStore

from conftest import make_transport, rss_document


NOW = "2025-03-01T00:00:00+00:00"
EARLIER = "2025-02-01T00:00:00+00:00"


def _links(prefix: str, count: int) -> list[str]:
    return [f"{prefix}/{i}" for i in range(count)]


def test_refresh_inserts_new_articles_and_is_idempotent(web, store):
    feed = store.create_feed("u1", "https://a.example.com/feed", "A", now=EARLIER)
    web.routes[feed.url] = rss_document("A", _links("https://a.example.com", 3))

    first = refresh_feeds(store, web.parser, now=NOW)
    second = refresh_feeds(store, web.parser, now=NOW)

    assert first.new_articles == 3
    assert second.new_articles == 0
    assert len(store.list_articles()) == 3


def test_refresh_caps_new_articles_per_cycle(web, store):
    feed = store.create_feed("u1", "https://a.example.com/feed", "A", now=EARLIER)
    links = _links("https://a.example.com", 12)
    web.routes[feed.url] = rss_document("A", links)

    first = refresh_feeds(store, web.parser, cap=10, now=NOW)
    second = refresh_feeds(store, web.parser, cap=10, now=NOW)

    assert first.new_articles == 10
    assert second.new_articles == 2
    assert store.existing_links(feed.id) == set(links)


def test_refresh_sanitizes_descriptions(web, store):
    feed = store.create_feed("u1", "https://a.example.com/feed", "A", now=EARLIER)
    item = """
        <item>
          <title>Tricky</title>
          <link>https://a.example.com/tricky</link>
          <description><![CDATA[<p onclick="x()">Hi<a href="javascript:alert(1)">link</a></p>]]></description>
        </item>"""
    web.routes[feed.url] = rss_document("A", [], extra_items=item)

    refresh_feeds(store, web.parser, now=NOW)

    [article] = store.list_articles()
    assert "onclick" not in article.description
    assert "javascript:" not in article.description
    assert "Hi" in article.description


def test_refresh_isolates_failing_feeds(web, store):
    broken = store.create_feed("u1", "https://broken.example.com/feed", "Broken", now=EARLIER)
    slow = store.create_feed("u1", "https://slow.example.com/feed", "Slow", now=EARLIER)
    garbage = store.create_feed("u1", "https://garbage.example.com/feed", "Garbage", now=EARLIER)
    good = store.create_feed("u1", "https://good.example.com/feed", "Good", now=EARLIER)

    web.routes[broken.url] = 500
    web.routes[slow.url] = httpx.ReadTimeout(
        "timed out", request=httpx.Request("GET", slow.url)
    )
    web.routes[garbage.url] = "<html>not a feed</html>"
    web.routes[good.url] = rss_document("Good", _links("https://good.example.com", 2))

    result = refresh_feeds(store, web.parser, now=NOW)

    assert result.new_articles == 2
    assert result.feeds_total == 4
    assert result.feeds_failed == 3
    kinds = {o.url: o.error_kind for o in result.outcomes}
    assert kinds == {
        broken.url: "FetchError",
        slow.url: "FetchError",
        garbage.url: "ParseError",
        good.url: None,
    }
    assert store.get_feed(good.id).last_fetched == NOW
    assert store.get_feed(slow.id).last_fetched == EARLIER


def test_refresh_updates_last_fetched_even_without_new_items(web, store):
    feed = store.create_feed("u1", "https://a.example.com/feed", "A", now=EARLIER)
    web.routes[feed.url] = rss_document("A", [])

    result = refresh_feeds(store, web.parser, now=NOW)

    assert result.new_articles == 0
    assert store.get_feed(feed.id).last_fetched == NOW


def test_refresh_updates_title_from_feed(web, store):
    feed = store.create_feed("u1", "https://a.example.com/feed", "Unknown Feed", now=EARLIER)
    web.routes[feed.url] = rss_document("Real Title", [])

    refresh_feeds(store, web.parser, now=NOW)

    assert store.get_feed(feed.id).title == "Real Title"


def test_refresh_does_not_rediscover(web, store):
    store.create_feed("u1", "https://a.example.com/feed", "A", now=EARLIER)
    web.routes["https://a.example.com/feed"] = rss_document("A", [])

    refresh_feeds(store, web.parser, now=NOW)

    assert [str(r.url) for r in web.requests] == ["https://a.example.com/feed"]


def test_refresh_limited_to_user(web, store):
    mine = store.create_feed("me", "https://a.example.com/feed", "A", now=EARLIER)
    store.create_feed("you", "https://b.example.com/feed", "B", now=EARLIER)
    web.routes[mine.url] = rss_document("A", _links("https://a.example.com", 1))

    result = refresh_feeds(store, web.parser, user_id="me", now=NOW)

    assert result.feeds_total == 1
    assert result.new_articles == 1


def test_add_feed_discovers_parses_and_caps(web, store):
    web.routes["https://example.com/blog"] = (
        '<html><head><link rel="alternate" type="application/rss+xml" href="/feed.xml"></head></html>'
    )
    web.routes["https://example.com/feed.xml"] = rss_document(
        "Example Blog", _links("https://example.com/posts", 7)
    )

    result = add_feed(store, web.discoverer, web.parser, "u1", "example.com/blog", cap=5, now=NOW)

    assert result.feed.url == "https://example.com/feed.xml"
    assert result.feed.title == "Example Blog"
    assert result.feed.last_fetched == NOW
    assert [a.link for a in result.articles] == _links("https://example.com/posts", 5)
    assert store.list_feeds("u1") == [result.feed]


def test_add_feed_uses_placeholder_title(web, store):
    web.routes["https://example.com/feed.xml"] = rss_document("", [])

    result = add_feed(store, web.discoverer, web.parser, "u1", "https://example.com/feed.xml")

    assert result.feed.title == "Unknown Feed"


def test_add_feed_rejects_duplicate_subscription(web, store):
    web.routes["https://example.com/feed.xml"] = rss_document("Example", [])
    add_feed(store, web.discoverer, web.parser, "u1", "https://example.com/feed.xml")

    with pytest.raises(DuplicateFeed):
        add_feed(store, web.discoverer, web.parser, "u1", "example.com/feed.xml")


def test_add_feed_propagates_errors_without_creating_feed(web, store):
    web.routes["https://example.com/blog"] = "<html><head></head></html>"
    web.routes["https://example.com/feed.xml"] = "not xml"

    with pytest.raises(FeedNotFound):
        add_feed(store, web.discoverer, web.parser, "u1", "https://example.com/blog")
    with pytest.raises(ParseError):
        add_feed(store, web.discoverer, web.parser, "u1", "https://example.com/feed.xml")
    with pytest.raises(InvalidURL):
        add_feed(store, web.discoverer, web.parser, "u1", "ftp://example.com/feed.xml")

    assert store.list_feeds() == []


def test_trigger_refresh_scheduled_and_manual(web, store, monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "s3cret")
    cfg = AppConfig()
    feed = store.create_feed("u1", "https://a.example.com/feed", "A", now=EARLIER)
    web.routes[feed.url] = rss_document("A", _links("https://a.example.com", 2))

    scheduled = trigger_refresh(store, web.parser, cfg, authorization="Bearer s3cret")
    manual = trigger_refresh(store, web.parser, cfg)

    assert scheduled == "Refresh complete. Added 2 new articles."
    assert manual == "Refresh complete. Added 0 new articles."


def test_trigger_refresh_rejects_wrong_secret(web, store, monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "s3cret")

    with pytest.raises(Unauthorized):
        trigger_refresh(store, web.parser, AppConfig(), authorization="Bearer nope")


def test_trigger_refresh_rejects_credential_when_no_secret_configured(web, store, monkeypatch):
    monkeypatch.delenv("CRON_SECRET", raising=False)

    with pytest.raises(Unauthorized):
        trigger_refresh(store, web.parser, AppConfig(), authorization="Bearer anything")


def test_open_pipeline_wires_configured_collaborators(store):
    cfg = AppConfig()
    cfg.fetch.user_agent = "TestAgent/1.0"
    seen = []

    def respond(request):
        seen.append(request.headers["User-Agent"])
        return httpx.Response(200, text=rss_document("Wired", []))

    transport = make_transport({"https://example.com/feed.xml": respond})
    with open_pipeline(cfg, store=store, transport=transport) as pipeline:
        assert pipeline.store is store
        feed = pipeline.parser.parse_url("https://example.com/feed.xml")
        client = pipeline.fetcher.client

    assert feed.title == "Wired"
    assert seen == ["TestAgent/1.0"]
    assert client.is_closed


class FailingStore(MemoryStore):
    """Memory store whose writes fail for chosen feeds."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_insert_for: set[str] = set()
        self.fail_title_for: set[str] = set()

    def insert_articles(self, articles):
        if any(a.feed_id in self.fail_insert_for for a in articles):
            raise PersistenceError("write failed")
        return super().insert_articles(articles)

    def update_feed_title(self, feed_id, title):
        if feed_id in self.fail_title_for:
            raise PersistenceError("write failed")
        super().update_feed_title(feed_id, title)


def test_refresh_continues_after_store_failure(web):
    store = FailingStore()
    bad = store.create_feed("u1", "https://bad.example.com/feed", "Bad", now=EARLIER)
    good = store.create_feed("u1", "https://good.example.com/feed", "Good", now=EARLIER)
    store.fail_insert_for.add(bad.id)
    web.routes[bad.url] = rss_document("Bad", _links("https://bad.example.com", 2))
    web.routes[good.url] = rss_document("Good", _links("https://good.example.com", 3))

    result = refresh_feeds(store, web.parser, now=NOW)

    assert result.new_articles == 3
    assert result.feeds_failed == 1
    kinds = {o.url: o.error_kind for o in result.outcomes}
    assert kinds == {bad.url: "PersistenceError", good.url: None}
    assert store.existing_links(bad.id) == set()
    assert store.existing_links(good.id) == set(_links("https://good.example.com", 3))
    assert store.get_feed(bad.id).last_fetched == EARLIER
    assert store.get_feed(good.id).last_fetched == NOW


def test_refresh_counts_inserted_articles_when_title_write_fails(web):
    store = FailingStore()
    feed = store.create_feed("u1", "https://a.example.com/feed", "Old Title", now=EARLIER)
    store.fail_title_for.add(feed.id)
    web.routes[feed.url] = rss_document("New Title", _links("https://a.example.com", 2))

    result = refresh_feeds(store, web.parser, now=NOW)

    assert result.feeds_failed == 1
    assert result.new_articles == 2
    assert result.outcomes[0].new_articles == 2
    assert len(store.list_articles()) == 2
    assert store.get_feed(feed.id).last_fetched == EARLIER


def test_refresh_skips_newsletter_feeds(web, store):
    ingest_newsletter(
        store,
        "u1",
        "Subject: Hello\nMessage-ID: <m1@example.com>\nContent-Type: text/plain\n\nBody\n",
        now=EARLIER,
    )
    feed = store.create_feed("u1", "https://a.example.com/feed", "A", now=EARLIER)
    web.routes[feed.url] = rss_document("A", _links("https://a.example.com", 1))

    result = refresh_feeds(store, web.parser, now=NOW)

    assert result.feeds_total == 1
    assert result.feeds_failed == 0
    assert result.new_articles == 1
    assert [str(r.url) for r in web.requests] == [feed.url]
    assert len(store.list_articles("u1")) == 2
