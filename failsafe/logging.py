"""
Structured Logging — JSON Lines for Hosts, Text for Terminals

Everything logs under the "failsafe" namespace. Validation context
(rule names, finding counts, timings) travels in `extra=` and is
copied into the output when its key is whitelisted below.

Usage:
    from failsafe.logging import get_logger
    logger = get_logger("orchestrator")
    logger.info("Validation complete", extra={"error_count": 1, "duration_ms": 12})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Optional


LOG_LEVEL = os.getenv("FAILSAFE_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("FAILSAFE_LOG_FORMAT", "json")  # "json" or "text"

_EXTRA_FIELDS = (
    "duration_ms", "rule", "pattern_id", "claim_type", "file_path",
    "applied_changes", "change_count", "warning_count", "error_count",
    "response_length", "error", "error_type",
)


def _extras(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in _EXTRA_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_extras(record))

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable format; whitelisted extras trail the message as key=value."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


def setup_logging(stream=None, level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """
    Configure the failsafe logger. Call once at startup.

    The CLI passes stderr so stdout carries only results.
    """
    root = logging.getLogger("failsafe")
    root.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))

    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    if (fmt or LOG_FORMAT) == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root.addHandler(handler)
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a named logger under the failsafe namespace."""
    return logging.getLogger(f"failsafe.{name}")
