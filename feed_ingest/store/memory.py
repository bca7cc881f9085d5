"""In-process store. Also the base for the JSON file store."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
import logging
from typing import Callable

from ..core.types import Article, Feed, new_id, utc_now_iso
from ..errors import PersistenceError
from .base import FeedStore


logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class MemoryStore(FeedStore):
    """Keeps feeds and articles in dictionaries.

    Subclasses persist state by overriding _commit(), which is called after
    every mutation. If the commit fails the mutation is undone, so the
    in-memory state never runs ahead of what was persisted.
    """

    def __init__(self) -> None:
        self._feeds: dict[str, Feed] = {}
        self._articles: dict[str, Article] = {}

    def _commit(self) -> None:
        """Hook for persistent subclasses."""

    def _commit_or_undo(self, undo: Callable[[], None]) -> None:
        try:
            self._commit()
        except PersistenceError:
            undo()
            raise

    def list_feeds(self, user_id: str | None = None) -> list[Feed]:
        feeds = [f for f in self._feeds.values() if user_id is None or f.user_id == user_id]
        return sorted(feeds, key=lambda f: f.created_at, reverse=True)

    def get_feed(self, feed_id: str) -> Feed | None:
        return self._feeds.get(feed_id)

    def find_feed_by_url(self, user_id: str, url: str) -> Feed | None:
        for feed in self._feeds.values():
            if feed.user_id == user_id and feed.url == url:
                return feed
        return None

    def create_feed(self, user_id: str, url: str, title: str, now: str | None = None) -> Feed:
        now = now or utc_now_iso()
        feed = Feed(
            id=new_id(),
            user_id=user_id,
            url=url,
            title=title,
            last_fetched=now,
            created_at=now,
        )
        self._feeds[feed.id] = feed
        self._commit_or_undo(lambda: self._feeds.pop(feed.id, None))
        return feed

    def delete_feed(self, feed_id: str) -> bool:
        if feed_id not in self._feeds:
            return False
        feeds, articles = self._feeds, self._articles
        self._feeds = {key: feed for key, feed in feeds.items() if key != feed_id}
        self._articles = {
            key: article for key, article in articles.items() if article.feed_id != feed_id
        }

        def undo() -> None:
            self._feeds, self._articles = feeds, articles

        self._commit_or_undo(undo)
        return True

    def existing_links(self, feed_id: str) -> set[str]:
        return {a.link for a in self._articles.values() if a.feed_id == feed_id and a.link}

    def insert_articles(self, articles: list[Article]) -> list[Article]:
        for article in articles:
            if article.feed_id not in self._feeds:
                raise PersistenceError(f"Unknown feed id: {article.feed_id}")

        inserted: list[Article] = []
        links_by_feed: dict[str, set[str]] = {}
        for article in articles:
            links = links_by_feed.get(article.feed_id)
            if links is None:
                links = links_by_feed[article.feed_id] = self.existing_links(article.feed_id)
            if article.link and article.link in links:
                logger.debug("Skipping already stored link %s", article.link)
                continue
            links.add(article.link)
            self._articles[article.id] = article
            inserted.append(article)

        def undo() -> None:
            for article in inserted:
                self._articles.pop(article.id, None)

        if inserted:
            self._commit_or_undo(undo)
        return inserted

    def list_articles(self, user_id: str | None = None, unread_only: bool = False) -> list[Article]:
        feed_ids = {f.id for f in self.list_feeds(user_id)}
        articles = [
            a
            for a in self._articles.values()
            if a.feed_id in feed_ids and (not unread_only or not a.is_read)
        ]
        return sorted(articles, key=lambda a: _date_key(a.pub_date), reverse=True)

    def mark_read(self, article_id: str) -> bool:
        article = self._articles.get(article_id)
        if article is None:
            return False
        if not article.is_read:
            article.is_read = True
            self._commit_or_undo(lambda: setattr(article, "is_read", False))
        return True

    def mark_all_read(self, user_id: str | None = None) -> int:
        changed = self.list_articles(user_id, unread_only=True)
        for article in changed:
            article.is_read = True

        def undo() -> None:
            for article in changed:
                article.is_read = False

        if changed:
            self._commit_or_undo(undo)
        return len(changed)

    def update_feed_last_fetched(self, feed_id: str, timestamp: str) -> None:
        feed = self._require_feed(feed_id)
        previous = feed.last_fetched
        feed.last_fetched = timestamp
        self._commit_or_undo(lambda: setattr(feed, "last_fetched", previous))

    def update_feed_title(self, feed_id: str, title: str) -> None:
        feed = self._require_feed(feed_id)
        previous = feed.title
        feed.title = title
        self._commit_or_undo(lambda: setattr(feed, "title", previous))

    def _require_feed(self, feed_id: str) -> Feed:
        feed = self._feeds.get(feed_id)
        if feed is None:
            raise PersistenceError(f"Unknown feed id: {feed_id}")
        return feed


def _date_key(value: str | None) -> datetime:
    """Sort key for pub_date values, which may be ISO or RFC 822 strings."""
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
