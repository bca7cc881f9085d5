"""Store factory: picks the storage backend once, from config."""

from __future__ import annotations

from ..config import StoreConfig
from .base import FeedStore
from .json_store import JsonFileStore
from .memory import MemoryStore


def _build_memory(cfg: StoreConfig) -> FeedStore:
    return MemoryStore()


def _build_json(cfg: StoreConfig) -> FeedStore:
    return JsonFileStore(cfg.path)


_STORE_REGISTRY = {
    "memory": _build_memory,
    "json": _build_json,
}


def available_stores() -> list[str]:
    """Return the registered backend names."""
    return sorted(_STORE_REGISTRY.keys())


def create_store(cfg: StoreConfig) -> FeedStore:
    """Build a store instance from runtime config."""
    name = cfg.backend.lower().strip()
    builder = _STORE_REGISTRY.get(name)
    if builder is None:
        supported = ", ".join(available_stores())
        raise ValueError(f"Unsupported store backend: {cfg.backend}. Supported: {supported}")
    return builder(cfg)
