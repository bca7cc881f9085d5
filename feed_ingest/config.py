"""
Configuration management using YAML files and dataclasses.

Configuration sections:
- FetchConfig: HTTP fetching settings
- IngestConfig: Per-cycle caps on new articles
- StoreConfig: Storage backend selection
- RefreshConfig: Refresh trigger settings
- LoggingConfig: Logging behavior
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import os
from typing import Any

import yaml


@dataclass
class FetchConfig:
    """Configuration for outbound HTTP requests.

    Attributes:
        timeout_seconds: Hard timeout for each request (discovery scrape and feed fetch)
        user_agent: HTTP User-Agent header string
        trust_env: Whether to respect system proxy settings
        follow_redirects: Whether to follow HTTP redirects
    """

    timeout_seconds: float = 10.0
    user_agent: str = "Mozilla/5.0 (compatible; RSSReader/1.0)"
    trust_env: bool = True
    follow_redirects: bool = True


@dataclass
class IngestConfig:
    """Caps on how many new articles a single cycle may admit per feed.

    Attributes:
        refresh_cap: Cap used by the refresh scheduler
        add_feed_cap: Cap used when a feed is first added
    """

    refresh_cap: int = 10
    add_feed_cap: int = 5


@dataclass
class StoreConfig:
    """Configuration for the feed/article store.

    Attributes:
        backend: "json" for a JSON file on disk, "memory" for a throwaway store
        path: JSON file location (json backend only)
    """

    backend: str = "json"
    path: str = "feeds.json"


@dataclass
class RefreshConfig:
    """Configuration for the refresh trigger.

    Attributes:
        cron_secret_env: Environment variable holding the scheduled caller's secret
        default_user: User id used by the CLI when none is given
    """

    cron_secret_env: str = "CRON_SECRET"
    default_user: str = "local"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file
        directory: Directory for the log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "feed_ingest.jsonl"
    directory: str = "logs"


@dataclass
class AppConfig:
    """Root configuration container aggregating all config sections."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults."""
    if not path:
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return _merge_config(AppConfig(), raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig.

    Unknown sections and unknown keys inside a section are ignored.
    """
    data = asdict(base)
    for key, value in raw.items():
        if key not in data or not isinstance(value, dict):
            continue
        section = data[key]
        section.update({k: v for k, v in value.items() if k in section})
    return _fromdict(data)


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    return AppConfig(
        fetch=FetchConfig(**data["fetch"]),
        ingest=IngestConfig(**data["ingest"]),
        store=StoreConfig(**data["store"]),
        refresh=RefreshConfig(**data["refresh"]),
        logging=LoggingConfig(**data["logging"]),
    )


def get_cron_secret(cfg: RefreshConfig) -> str | None:
    """Get the scheduled caller's shared secret from the environment."""
    return os.getenv(cfg.cron_secret_env) or None
