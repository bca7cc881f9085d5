"""
Pipeline orchestration.

This module wires the pipeline steps together:
1. add_feed: normalize -> discover -> parse -> create feed -> dedup -> sanitize -> store
2. refresh_feeds: for every stored feed, parse -> dedup -> sanitize -> store,
   isolating failures per feed
3. trigger_refresh: credential check for scheduled callers, then refresh_feeds
4. ingest_newsletter: raw email -> article on the user's newsletter feed

Feeds are processed one at a time. Each network call is bounded by the
fetcher's timeout, so a slow feed costs at most that long before the loop
moves on. Manual and scheduled refreshes are not mutually excluded; the
store's per-feed link uniqueness absorbs the overlap.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import hmac
import logging
import time
from typing import Iterator
from urllib.parse import urlsplit

import httpx

from .config import AppConfig, get_cron_secret
from .core.dedup import diff_new_articles
from .core.newsletter import NEWSLETTER_FEED_TITLE, article_from_email, newsletter_feed_url
from .core.sanitizer import sanitize_html
from .core.types import Article, Feed, utc_now_iso
from .core.urls import ALLOWED_SCHEMES, normalize_url
from .errors import DuplicateFeed, FetchError, ParseError, PersistenceError, Unauthorized
from .fetch.discovery import FeedDiscoverer
from .fetch.fetcher import HttpFetcher, build_client
from .fetch.parser import FeedParser
from .store.base import FeedStore
from .store.factory import create_store
from .utils.logging import log_event


logger = logging.getLogger(__name__)

DEFAULT_FEED_TITLE = "Unknown Feed"


@dataclass
class FeedOutcome:
    """What happened to one feed during a refresh cycle.

    Attributes:
        feed_id: The feed's id
        url: The feed URL that was fetched
        new_articles: Number of articles inserted
        error: Error message if the feed was skipped, None on success
        error_kind: Exception class name of the failure, None on success
    """
    feed_id: str
    url: str
    new_articles: int = 0
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RefreshResult:
    """Aggregate result of one refresh cycle."""
    new_articles: int = 0
    feeds_total: int = 0
    feeds_failed: int = 0
    outcomes: list[FeedOutcome] = field(default_factory=list)


@dataclass
class AddFeedResult:
    """Result of subscribing to a new feed."""
    feed: Feed
    articles: list[Article]


@dataclass
class Pipeline:
    """The explicitly constructed collaborators shared by one invocation."""
    cfg: AppConfig
    store: FeedStore
    fetcher: HttpFetcher
    parser: FeedParser
    discoverer: FeedDiscoverer


@contextmanager
def open_pipeline(
    cfg: AppConfig,
    store: FeedStore | None = None,
    transport: httpx.BaseTransport | None = None,
) -> Iterator[Pipeline]:
    """Build the HTTP client, fetcher, parser, discoverer and store.

    The HTTP client is closed when the context exits.

    Args:
        cfg: Application configuration
        store: Store to use instead of the one configured in cfg.store
        transport: Optional httpx transport override (tests)
    """
    client = build_client(cfg.fetch, transport=transport)
    try:
        fetcher = HttpFetcher(client, timeout=cfg.fetch.timeout_seconds)
        yield Pipeline(
            cfg=cfg,
            store=store if store is not None else create_store(cfg.store),
            fetcher=fetcher,
            parser=FeedParser(fetcher),
            discoverer=FeedDiscoverer(fetcher),
        )
    finally:
        client.close()


def _sanitized(articles: list[Article]) -> list[Article]:
    for article in articles:
        article.description = sanitize_html(article.description)
    return articles


def refresh_feeds(
    store: FeedStore,
    parser: FeedParser,
    user_id: str | None = None,
    cap: int = 10,
    now: str | None = None,
) -> RefreshResult:
    """Fetch every known feed once and store the new articles.

    Feeds are fetched from their stored URL; discovery is not re-run, and
    feeds without an http(s) URL (newsletters) are left out. A
    feed that fails to fetch, parse or persist is logged and skipped; the
    rest of the batch continues. For every feed that parses, last_fetched
    is set to the current time even when nothing new was found.

    Args:
        store: Feed/article store
        parser: Feed parser bound to an HTTP fetcher
        user_id: Restrict the cycle to one user's feeds (None = all feeds)
        cap: Maximum new articles admitted per feed
        now: Timestamp for last_fetched and ingestion; defaults to current UTC time

    Returns:
        RefreshResult with the total number of inserted articles

    Raises:
        PersistenceError: If the feed list itself cannot be loaded
    """
    started = time.monotonic()
    # Newsletter feeds are filled by email ingestion and have nothing to fetch
    feeds = [f for f in store.list_feeds(user_id) if _is_fetchable(f.url)]
    result = RefreshResult(feeds_total=len(feeds))
    log_event(logger, "Refresh start", event="refresh_start", feeds=len(feeds), user_id=user_id)

    for feed in feeds:
        outcome = _refresh_one(store, parser, feed, cap, now)
        result.outcomes.append(outcome)
        result.new_articles += outcome.new_articles
        if not outcome.ok:
            result.feeds_failed += 1

    log_event(
        logger,
        f"Refresh complete: {result.new_articles} new articles",
        event="refresh_complete",
        new_articles=result.new_articles,
        feeds=result.feeds_total,
        failed=result.feeds_failed,
        elapsed_seconds=round(time.monotonic() - started, 3),
    )
    return result


def _is_fetchable(url: str) -> bool:
    return urlsplit(url).scheme.lower() in ALLOWED_SCHEMES


def _refresh_one(
    store: FeedStore,
    parser: FeedParser,
    feed: Feed,
    cap: int,
    now: str | None,
) -> FeedOutcome:
    outcome = FeedOutcome(feed_id=feed.id, url=feed.url)
    try:
        parsed = parser.parse_url(feed.url)
        timestamp = now or utc_now_iso()
        candidates = diff_new_articles(
            feed.id, store.existing_links(feed.id), parsed.items, cap, timestamp
        )
        inserted = store.insert_articles(_sanitized(candidates))
        outcome.new_articles = len(inserted)
        if parsed.title and parsed.title != feed.title:
            store.update_feed_title(feed.id, parsed.title)
        store.update_feed_last_fetched(feed.id, timestamp)
    except (FetchError, ParseError, PersistenceError) as exc:
        outcome.error = str(exc)
        outcome.error_kind = type(exc).__name__
        log_event(
            logger,
            f"Failed to refresh feed {feed.url}: {exc}",
            level=logging.WARNING,
            event="feed_failed",
            feed_id=feed.id,
            url=feed.url,
            error_kind=outcome.error_kind,
        )
        return outcome

    log_event(
        logger,
        f"Refreshed {feed.url}: {outcome.new_articles} new",
        level=logging.DEBUG,
        event="feed_refreshed",
        feed_id=feed.id,
        url=feed.url,
        new_articles=outcome.new_articles,
    )
    return outcome


def add_feed(
    store: FeedStore,
    discoverer: FeedDiscoverer,
    parser: FeedParser,
    user_id: str,
    raw_url: str,
    cap: int = 5,
    now: str | None = None,
) -> AddFeedResult:
    """Subscribe a user to the feed behind a site or feed URL.

    Any failure propagates to the caller as-is; nothing is retried.

    Raises:
        InvalidURL, FetchError, FeedNotFound, ParseError, PersistenceError
        DuplicateFeed: The user already has this feed
    """
    url = normalize_url(raw_url)
    feed_url = discoverer.discover(url)
    if store.find_feed_by_url(user_id, feed_url) is not None:
        raise DuplicateFeed(f"Already subscribed to {feed_url}")

    parsed = parser.parse_url(feed_url)
    now = now or utc_now_iso()
    feed = store.create_feed(user_id, feed_url, parsed.title or DEFAULT_FEED_TITLE, now=now)
    candidates = diff_new_articles(feed.id, set(), parsed.items, cap, now)
    articles = store.insert_articles(_sanitized(candidates))

    log_event(
        logger,
        f"Added feed {feed.title} ({feed_url})",
        event="feed_added",
        feed_id=feed.id,
        url=feed_url,
        articles=len(articles),
    )
    return AddFeedResult(feed=feed, articles=articles)


def is_scheduled_caller(authorization: str | None, secret: str | None) -> bool:
    """True when the Authorization value is "Bearer <secret>"."""
    if not authorization or not secret:
        return False
    return hmac.compare_digest(authorization.strip(), f"Bearer {secret}")


def authorize_refresh(cfg: AppConfig, authorization: str | None = None) -> str:
    """Classify a refresh caller.

    A caller presenting the shared secret is the scheduler; a caller
    presenting nothing is a manual refresh.

    Returns:
        "scheduled" or "manual"

    Raises:
        Unauthorized: An authorization value was given but does not match
    """
    scheduled = is_scheduled_caller(authorization, get_cron_secret(cfg.refresh))
    if authorization and not scheduled:
        raise Unauthorized("Invalid refresh credential")
    trigger = "scheduled" if scheduled else "manual"
    log_event(logger, f"{trigger.capitalize()} refresh requested", event="refresh_trigger", trigger=trigger)
    return trigger


def refresh_message(result: RefreshResult) -> str:
    return f"Refresh complete. Added {result.new_articles} new articles."


def trigger_refresh(
    store: FeedStore,
    parser: FeedParser,
    cfg: AppConfig,
    authorization: str | None = None,
    user_id: str | None = None,
) -> str:
    """Authorize the caller and run one refresh cycle.

    Scheduled and manual callers run the identical cycle.

    Returns:
        Human-readable count of newly added articles
    """
    authorize_refresh(cfg, authorization)
    result = refresh_feeds(store, parser, user_id=user_id, cap=cfg.ingest.refresh_cap)
    return refresh_message(result)


def ingest_newsletter(
    store: FeedStore,
    user_id: str,
    raw_email: bytes | str,
    now: str | None = None,
) -> Article | None:
    """Store a newsletter email as an article on the user's newsletter feed.

    Returns:
        The inserted Article, or None if this message was already stored
    """
    url = newsletter_feed_url(user_id)
    feed = store.find_feed_by_url(user_id, url)
    if feed is None:
        feed = store.create_feed(user_id, url, NEWSLETTER_FEED_TITLE, now=now)

    article = article_from_email(raw_email, feed.id, now=now)
    inserted = store.insert_articles([article])
    if not inserted:
        logger.info("Newsletter %s already stored", article.link)
        return None
    log_event(
        logger,
        f"Processed newsletter: {article.title}",
        event="newsletter_ingested",
        feed_id=feed.id,
        link=article.link,
    )
    return inserted[0]
