"""Logging helpers shared across the cache and resolver packages.

Keeps structured ``extra=`` payloads consistent so every component logs
the same field names (event, component, action, outcome, target, ...).
"""
from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Dict, Optional

from constants import Constants

_CREDENTIALS_RE = re.compile(r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://)(?P<auth>[^/@\s]+)@")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once, honoring DEPCACHE_LOG_LEVEL.

    Args:
        level: Optional level name overriding the environment.
    """
    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=Constants.LOG_FORMAT)
    root.setLevel(level_value)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records.

    None values are dropped so handlers only see populated fields.
    """
    return {k: v for k, v in fields.items() if v is not None}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def safe_url(location: Optional[str]) -> str:
    """Strip user credentials from a URL-like location before logging it."""
    if not location:
        return ""
    return _CREDENTIALS_RE.sub(lambda m: f"{m.group('scheme')}***@", str(location))


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.monotonic()

    def duration_ms(self) -> int:
        """Elapsed milliseconds; keeps counting while the block is still open."""
        if self._start is None:
            return 0
        end = self._end if self._end is not None else time.monotonic()
        return int((end - self._start) * 1000)
