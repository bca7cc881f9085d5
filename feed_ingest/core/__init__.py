"""
Core domain models and pure pipeline steps.

Everything in this package is free of network and storage I/O.
"""

from .types import Article, Feed, ParsedFeed, ParsedItem
from .dedup import build_articles, diff_new_articles, select_new_items
from .sanitizer import sanitize_html
from .urls import normalize_url

__all__ = [
    "Article",
    "Feed",
    "ParsedFeed",
    "ParsedItem",
    "build_articles",
    "diff_new_articles",
    "select_new_items",
    "sanitize_html",
    "normalize_url",
]
