"""
Error taxonomy for the ingestion pipeline.

Interactive paths (discover, parse, add feed) let these propagate to the
caller. The refresh scheduler catches FetchError, ParseError and
PersistenceError per feed and moves on to the next one.
"""

from __future__ import annotations


class FeedIngestError(Exception):
    """Base class for all pipeline errors."""


class InvalidURL(FeedIngestError):
    """Input is not an absolute http(s) URL after normalization."""


class FetchError(FeedIngestError):
    """Network failure, non-2xx status, or timeout expiry.

    Attributes:
        url: The URL being fetched
        reason: "timeout", "network" or "status"
        status_code: HTTP status for reason == "status", else None
    """

    def __init__(
        self,
        url: str,
        reason: str,
        message: str | None = None,
        status_code: int | None = None,
    ):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        detail = message or reason
        super().__init__(f"Failed to fetch {url}: {detail}")


class ParseError(FeedIngestError):
    """Body was retrieved but is not a valid RSS/Atom document."""


class FeedNotFound(FeedIngestError):
    """No feed link could be discovered for the page."""


class PersistenceError(FeedIngestError):
    """The store rejected a read or write."""


class DuplicateFeed(FeedIngestError):
    """The user is already subscribed to this feed URL."""


class Unauthorized(FeedIngestError):
    """Refresh trigger presented a credential that does not match."""
