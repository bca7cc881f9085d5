"""
Abstract base class for feed/article stores.

New backends should inherit from FeedStore and implement every abstract
method. The pipeline only talks to this interface; which backend is used
is decided once at startup by create_store().
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..core.types import Article, Feed


class FeedStore(ABC):
    """Storage interface for feeds and their articles.

    Implementations must keep article links unique per feed: an
    insert_articles() call skips any article whose link is already stored
    for its feed, which makes concurrent refreshes harmless apart from
    wasted work.
    """

    @abstractmethod
    def list_feeds(self, user_id: str | None = None) -> list[Feed]:
        """List feeds, newest first, optionally restricted to one user."""
        raise NotImplementedError

    @abstractmethod
    def get_feed(self, feed_id: str) -> Feed | None:
        raise NotImplementedError

    @abstractmethod
    def find_feed_by_url(self, user_id: str, url: str) -> Feed | None:
        raise NotImplementedError

    @abstractmethod
    def create_feed(self, user_id: str, url: str, title: str, now: str | None = None) -> Feed:
        """Create a feed with last_fetched set to creation time."""
        raise NotImplementedError

    @abstractmethod
    def delete_feed(self, feed_id: str) -> bool:
        """Delete a feed and all of its articles.

        Returns:
            True if the feed existed
        """
        raise NotImplementedError

    @abstractmethod
    def existing_links(self, feed_id: str) -> set[str]:
        """Return the links of all articles stored for a feed."""
        raise NotImplementedError

    @abstractmethod
    def insert_articles(self, articles: list[Article]) -> list[Article]:
        """Insert articles, skipping links already stored for their feed.

        Returns:
            The articles that were actually inserted

        Raises:
            PersistenceError: If an article references an unknown feed
                or the backend cannot write
        """
        raise NotImplementedError

    @abstractmethod
    def list_articles(self, user_id: str | None = None, unread_only: bool = False) -> list[Article]:
        """List articles ordered by pub_date, newest first."""
        raise NotImplementedError

    @abstractmethod
    def mark_read(self, article_id: str) -> bool:
        """Set is_read on one article. Returns False if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def mark_all_read(self, user_id: str | None = None) -> int:
        """Mark every unread article as read. Returns how many changed."""
        raise NotImplementedError

    @abstractmethod
    def update_feed_last_fetched(self, feed_id: str, timestamp: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def update_feed_title(self, feed_id: str, title: str) -> None:
        raise NotImplementedError
