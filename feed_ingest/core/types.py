"""
Core data types for feed ingestion.

This module defines the records that flow through the pipeline:
- ParsedItem / ParsedFeed: what the feed parser hands to the dedup engine
- Feed: a subscribed feed as kept by the store
- Article: one stored item, deduplicated per feed by its link
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any
import uuid


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ParsedItem:
    """A single entry from a parsed feed, before dedup.

    Attributes:
        title: Entry title (may be empty)
        link: Entry permalink; the dedup key. Empty means "cannot dedup"
        content: Body from the entry content/summary element
        content_encoded: Body from RSS content:encoded, when the feed has it
        content_snippet: Plain-text version of the body
        iso_date: Machine-parsed publish date as ISO 8601 UTC, if parseable
        pub_date: Raw date string exactly as the feed provided it
    """
    title: str = ""
    link: str = ""
    content: str = ""
    content_encoded: str = ""
    content_snippet: str = ""
    iso_date: str | None = None
    pub_date: str | None = None


@dataclass
class ParsedFeed:
    """A parsed feed document. Items keep the source order."""
    title: str
    items: list[ParsedItem] = field(default_factory=list)
    link: str | None = None


@dataclass
class Feed:
    """A feed subscribed by a user.

    Attributes:
        id: Opaque identifier assigned by the store
        user_id: Owning user
        url: Feed URL used for every refresh (discovery is not re-run)
        title: Human-readable title, refreshed from the feed document
        last_fetched: ISO 8601 timestamp of the last refresh attempt that parsed
        created_at: ISO 8601 creation timestamp
    """
    id: str
    user_id: str
    url: str
    title: str
    last_fetched: str | None = None
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Feed":
        return cls(**data)


@dataclass
class Article:
    """A stored feed item.

    Attributes:
        feed_id: Feed this article belongs to
        title: Item title
        link: Dedup key, unique per feed
        description: Sanitized HTML body
        pub_date: Publish timestamp (ISO date, raw feed date or ingestion time)
        is_read: Read flag; only ever flips from False to True
        id: Opaque identifier
        created_at: ISO 8601 ingestion timestamp
    """
    feed_id: str
    title: str
    link: str
    description: str
    pub_date: str
    is_read: bool = False
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Article":
        return cls(**data)
