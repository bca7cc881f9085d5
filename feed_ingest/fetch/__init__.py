"""
Network-facing pipeline steps.

This package handles HTTP fetching, feed discovery
and feed parsing.
"""

from .fetcher import FetchResult, HttpFetcher, build_client
from .discovery import FeedDiscoverer, direct_pattern_rule, find_feed_link, platform_rule
from .parser import FeedParser, parse_feed

__all__ = [
    "FetchResult",
    "HttpFetcher",
    "build_client",
    "FeedDiscoverer",
    "direct_pattern_rule",
    "platform_rule",
    "find_feed_link",
    "FeedParser",
    "parse_feed",
]
