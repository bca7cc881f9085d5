"""
Per-feed deduplication of parsed items against stored articles.

The link of an item is the only dedup key. Given the links already stored
for a feed and a freshly parsed item list, this module picks the genuinely
new items (in source order, capped per cycle) and maps them into Article
records. Nothing here performs I/O.
"""

from __future__ import annotations

from typing import Iterable

from .types import Article, ParsedItem, utc_now_iso


def select_new_items(
    existing_links: Iterable[str],
    items: Iterable[ParsedItem],
    cap: int,
) -> list[ParsedItem]:
    """Pick the items that are not yet stored, keeping source order.

    Items without a link are dropped because they cannot be deduplicated.
    A link repeated within the same batch is only admitted once. The
    result is then cut to the first ``cap`` items; the feed is not
    re-sorted, so "newest first" only holds if the source orders that way.

    Args:
        existing_links: Links already stored for the feed
        items: Parsed items in feed order
        cap: Maximum number of items to admit this cycle

    Returns:
        At most ``cap`` new items

    Raises:
        ValueError: If cap is negative
    """
    if cap < 0:
        raise ValueError(f"cap must be >= 0, got {cap}")

    seen = set(existing_links)
    selected: list[ParsedItem] = []
    for item in items:
        if len(selected) >= cap:
            break
        link = (item.link or "").strip()
        if not link or link in seen:
            continue
        seen.add(link)
        selected.append(item)
    return selected


def pick_content(item: ParsedItem) -> str:
    """content:encoded, then content, then the plain snippet, then ""."""
    return item.content_encoded or item.content or item.content_snippet or ""


def pick_pub_date(item: ParsedItem, now: str) -> str:
    """Machine-parsed date, then the raw feed date, then ingestion time."""
    return item.iso_date or item.pub_date or now


def build_articles(
    feed_id: str,
    items: Iterable[ParsedItem],
    now: str | None = None,
) -> list[Article]:
    """Map selected items into unsanitized Article records.

    Args:
        feed_id: Feed the articles belong to
        items: Items already filtered by select_new_items
        now: Ingestion timestamp; defaults to the current UTC time

    Returns:
        Article records with is_read False and the raw selected content
        as description
    """
    now = now or utc_now_iso()
    return [
        Article(
            feed_id=feed_id,
            title=item.title or "",
            link=item.link.strip(),
            description=pick_content(item),
            pub_date=pick_pub_date(item, now),
            is_read=False,
            created_at=now,
        )
        for item in items
    ]


def diff_new_articles(
    feed_id: str,
    existing_links: Iterable[str],
    items: Iterable[ParsedItem],
    cap: int,
    now: str | None = None,
) -> list[Article]:
    """Compute the new Article records for one feed in one cycle."""
    return build_articles(feed_id, select_new_items(existing_links, items, cap), now)
