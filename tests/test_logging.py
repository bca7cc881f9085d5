"""Tests for logging setup and structured events."""

import json
import logging

from feed_ingest.config import LoggingConfig
from feed_ingest.utils.logging import log_event, setup_logging


def test_setup_logging_writes_jsonl_events(tmp_path):
    cfg = LoggingConfig(console=False, file=True, format="jsonl", filename="run.jsonl")
    logger = setup_logging(cfg, tmp_path)

    child = logging.getLogger("feed_ingest.runner")
    log_event(child, "Refresh complete", event="refresh_complete", new_articles=3)

    for handler in logger.handlers:
        handler.flush()
        handler.close()
    logger.handlers = []

    lines = (tmp_path / "run.jsonl").read_text(encoding="utf-8").strip().split("\n")
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["message"] == "Refresh complete"
    assert entry["event"] == "refresh_complete"
    assert entry["new_articles"] == 3
    assert entry["logger"] == "feed_ingest.runner"
    assert entry["level"] == "INFO"
    assert "timestamp" in entry


def test_setup_logging_respects_level_and_disabled_outputs():
    logger = setup_logging(LoggingConfig(level="warning", console=False, file=False))

    assert logger.name == "feed_ingest"
    assert logger.level == logging.WARNING
    assert logger.handlers == []
    assert logger.propagate is False


def test_log_event_ignores_missing_logger():
    log_event(None, "nothing happens", event="noop")
