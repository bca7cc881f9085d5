"""
JSON file store.

The whole state lives in one JSON document:

    {"feeds": [...], "articles": [...]}

It is read once when the store is opened and rewritten after every
mutation. Writes go to a temporary file in the same directory which then
replaces the target, so a crash mid-write never leaves a truncated file.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
import tempfile
from typing import Any

from ..core.types import Article, Feed
from ..errors import PersistenceError
from .memory import MemoryStore


logger = logging.getLogger(__name__)


class JsonFileStore(MemoryStore):
    """Store backed by a single JSON file.

    Attributes:
        path: Location of the JSON document; created on first write
    """

    def __init__(self, path: Path | str):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f) or {}
            feeds = [Feed.from_dict(item) for item in raw.get("feeds", [])]
            articles = [Article.from_dict(item) for item in raw.get("articles", [])]
        except (OSError, ValueError, TypeError) as exc:
            raise PersistenceError(f"Cannot read store file {self.path}: {exc}") from exc

        self._feeds = {feed.id: feed for feed in feeds}
        self._articles = {article.id: article for article in articles}
        logger.debug(
            "Loaded %d feeds and %d articles from %s", len(self._feeds), len(self._articles), self.path
        )

    def _commit(self) -> None:
        payload: dict[str, Any] = {
            "feeds": [feed.to_dict() for feed in self._feeds.values()],
            "articles": [article.to_dict() for article in self._articles.values()],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise PersistenceError(f"Cannot write store file {self.path}: {exc}") from exc
