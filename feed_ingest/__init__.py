"""
feed_ingest - RSS/Atom feed discovery and ingestion.

This package turns a site URL into a feed URL, parses the feed, and keeps a
per-user store of articles up to date by periodically re-fetching known
feeds while never storing the same link twice for a feed.

Main entry point is the CLI via the `feed-ingest` command.

Example:
    $ feed-ingest add example.com/blog
    $ feed-ingest refresh
"""

__all__ = [
    "__version__",
    "normalize_url",
    "sanitize_html",
    "diff_new_articles",
    "FeedDiscoverer",
    "FeedParser",
    "refresh_feeds",
    "add_feed",
]
__version__ = "0.1.0"

from .core import diff_new_articles, normalize_url, sanitize_html
from .fetch import FeedDiscoverer, FeedParser
from .runner import add_feed, refresh_feeds
