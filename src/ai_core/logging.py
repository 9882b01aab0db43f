"""Logging for the ai_core namespace.

Every module logs through ``get_logger("<module>")``; the
service entry point calls ``setup_logging`` once to attach a single stderr
handler, either human-readable or one JSON object per line.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

ROOT_LOGGER = "ai_core"
TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"


class JsonLineFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> logging.Logger:
    """Attach the stderr handler to the ai_core logger.

    Args:
        level: Level name, case-insensitive (unknown names fall back to INFO)
        json_output: Emit JSON lines instead of plain text

    Returns:
        The ai_core logger. Repeated calls only change the level.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
