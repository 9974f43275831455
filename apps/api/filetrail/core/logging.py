"""Logging setup and helpers for log-safe correlation fields."""

from __future__ import annotations

import hashlib
import logging
import sys
from typing import Any

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | int = logging.INFO) -> None:
    """Configure the root logger with a single stdout handler."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)


def safe_log_identifier(value: Any, *, prefix: str) -> str:
    """Return a short non-reversible token so emails, ids and tokens never reach the logs.

    Values are case-folded first so the same email always maps to the same token.
    """
    text = str(value or "").strip().casefold()
    if not text:
        return f"{prefix}-none"

    return f"{prefix}-{hashlib.sha256(text.encode('utf-8')).hexdigest()[:12]}"
