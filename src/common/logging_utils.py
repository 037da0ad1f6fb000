"""Centralized logging helpers.

Every module logs through ``logging.getLogger(__name__)``; this module owns
the root configuration and the helpers used to attach structured context to
DEBUG traces without leaking credentials.
"""
from __future__ import annotations

import logging
import os
import re
import sys
import time
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from constants import Constants

REDACTED = "[REDACTED]"
_SENSITIVE_KEYS = ("token", "password", "passwd", "secret", "key", "auth", "signature")
_SENSITIVE_PATTERN = re.compile(
    r"(?i)\b(" + "|".join(_SENSITIVE_KEYS) + r")(\s*[=:]\s*)([^\s&,;]+)"
)


class _ContextFormatter(logging.Formatter):
    """Formatter appending structured ``extra`` fields at DEBUG level."""

    _RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None)))

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno > logging.DEBUG:
            return message
        fields = {
            key: value
            for key, value in vars(record).items()
            if key not in self._RESERVED and key not in ("message", "asctime")
        }
        if not fields:
            return message
        rendered = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
        return f"{message} [{rendered}]"


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure the root logger once for the whole process.

    Args:
        level: Level name; defaults to the BUILDCHECK_LOG_LEVEL environment
            variable, then INFO.
        log_file: Optional path of a file receiving a copy of every record.
    """
    level_name = str(level or os.environ.get(Constants.ENV_LOG_LEVEL, "INFO")).upper()
    level_value = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_ContextFormatter(Constants.LOG_FORMAT))
    root.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            _ContextFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        root.addHandler(file_handler)

    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records of the given logger would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` payload, dropping fields whose value is None."""
    return {key: value for key, value in fields.items() if value is not None}


def redact(text: Optional[str]) -> Optional[str]:
    """Mask values of credential-like ``key=value`` pairs in free text."""
    if text is None:
        return None
    return _SENSITIVE_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)


def safe_url(url: str) -> str:
    """Return the URL with embedded credentials and sensitive query values masked.

    Args:
        url: URL possibly carrying ``user:password@`` or token parameters.

    Returns:
        str: URL suitable for logs.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return redact(url) or ""
    netloc = parts.netloc
    if "@" in netloc:
        netloc = f"{REDACTED}@{netloc.rsplit('@', 1)[1]}"
    query = parts.query
    if query:
        pairs = [
            (key, REDACTED if any(s in key.lower() for s in _SENSITIVE_KEYS) else value)
            for key, value in parse_qsl(query, keep_blank_values=True)
        ]
        query = urlencode(pairs, safe="[]")
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> float:
        """Milliseconds elapsed since entering, up to exit when already exited."""
        if self._start is None:
            return 0.0
        end = self._end if self._end is not None else time.perf_counter()
        return round((end - self._start) * 1000.0, 3)
