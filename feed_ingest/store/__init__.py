"""
Feed and article storage.

One interface (FeedStore) with interchangeable backends, chosen once at
startup through create_store().
"""

from .base import FeedStore
from .factory import available_stores, create_store
from .json_store import JsonFileStore
from .memory import MemoryStore

__all__ = [
    "FeedStore",
    "MemoryStore",
    "JsonFileStore",
    "create_store",
    "available_stores",
]
