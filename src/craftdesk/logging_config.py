"""
Structured logging configuration for CraftDesk.

Provides human-readable or JSON-formatted logging with:
- Credential filtering (bearer tokens, auth headers never reach the output)
- URL normalization (query strings of signed download URLs are dropped)
- A DEBUG switch driven by the environment

Usage:
    from craftdesk.logging_config import setup_logging, get_logger

    setup_logging()  # Call once at startup
    logger = get_logger(__name__)
    logger.info("message", extra={"key": "value"})
"""

from __future__ import annotations

import logging
import os
import re
import sys
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

import orjson

# Environment variables that switch on debug output
DEBUG_ENV_VARS = ("CRAFTDESK_DEBUG", "DEBUG")

_URL_PATTERN = re.compile(r"(https?://[^\s\"'<>]+)")
_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Authorization headers (before bearer, which they usually contain)
    (re.compile(r"\bauthorization[=:\s]+['\"]?(bearer\s+)?[\w\-\.~+/]+=*['\"]?", re.I), "[AUTH]"),
    # Bearer tokens
    (re.compile(r"\bbearer\s+[\w\-\.~+/]+=*", re.I), "[TOKEN]"),
    # token=..., api_key: ...
    (re.compile(r"\b(token|api[_-]?key|apikey)[=:]\s*['\"]?[\w\-\.]+['\"]?", re.I), "[TOKEN]"),
]

# Fields that must never appear in logs
BLOCKED_FIELDS: frozenset[str] = frozenset(
    {
        "token",
        "authorization",
        "bearer",
        "password",
        "secret",
        "credential",
        "api_key",
        "headers",
    }
)

# Fields replaced by a placeholder (large or may embed credentials)
HIGH_CARDINALITY_FIELDS: dict[str, str] = {
    "url": "endpoint",  # Path only
    "body": "[BODY]",
    "payload": "[PAYLOAD]",
    "params": "[PARAMS]",
    "lockfile": "[LOCKFILE]",
}

# Standard LogRecord attributes; everything else on a record is an `extra`
_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def _normalize_url(url: str) -> str:
    """Reduce a URL to host + path (no credentials, no query string)."""
    parts = urlsplit(url)
    host = parts.hostname or ""
    return f"{host}{parts.path or '/'}"


def _sanitize_text(text: str) -> str:
    """Strip query strings and credentials from free-form text."""
    if not text:
        return text

    result = _URL_PATTERN.sub(lambda m: _normalize_url(m.group(1)), text)
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _filter_log_record(record: dict[str, Any], *, _depth: int = 0) -> dict[str, Any]:
    """Drop credential fields and normalize noisy ones. Recurses up to depth 3."""
    if _depth > 3:
        return {"_truncated": "max depth exceeded"}

    filtered: dict[str, Any] = {}

    for key, value in record.items():
        key_lower = key.lower()

        if any(blocked in key_lower for blocked in BLOCKED_FIELDS):
            continue

        if key_lower in HIGH_CARDINALITY_FIELDS:
            if key_lower == "url" and isinstance(value, str):
                filtered["endpoint"] = _normalize_url(value)
            else:
                filtered[key] = HIGH_CARDINALITY_FIELDS[key_lower]
            continue

        if isinstance(value, (int, float, bool, type(None))):
            filtered[key] = value
        elif isinstance(value, str):
            filtered[key] = _sanitize_text(value)
        elif isinstance(value, (list, tuple)):
            if len(value) <= 10:
                filtered[key] = list(value)
            else:
                filtered[key] = f"[list:{len(value)} items]"
        elif isinstance(value, dict):
            filtered[key] = _filter_log_record(value, _depth=_depth + 1)
        else:
            filtered[key] = _sanitize_text(str(value))

    return filtered


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
    return _filter_log_record(extra) if extra else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Output format:
    {"ts":"2026-01-01T00:00:00.000+00:00","level":"INFO","logger":"module","msg":"...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": _sanitize_text(record.getMessage()),
        }

        if record.levelno >= logging.WARNING:
            log_dict["file"] = record.filename
            log_dict["line"] = record.lineno

        if record.exc_info:
            log_dict["exc"] = _sanitize_text(self.formatException(record.exc_info))

        log_dict.update(_record_extras(record))

        return orjson.dumps(log_dict, default=str).decode()


class SimpleFormatter(logging.Formatter):
    """Human-readable formatter for terminals and tests."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname:8s} {record.name}: {_sanitize_text(record.getMessage())}"

        extra = _record_extras(record)
        if extra:
            extra_str = " ".join(f"{k}={v}" for k, v in extra.items())
            base = f"{base} | {extra_str}"

        if record.exc_info:
            base = f"{base}\n{_sanitize_text(self.formatException(record.exc_info))}"

        return base


def resolve_log_level() -> int:
    """DEBUG if CRAFTDESK_DEBUG or DEBUG is set to a non-empty value, else INFO."""
    if any(os.environ.get(name) for name in DEBUG_ENV_VARS):
        return logging.DEBUG
    return logging.INFO


def setup_logging(
    *,
    level: int | str | None = None,
    json_format: bool = False,
    stream: Any = None,
) -> None:
    """Configure logging for the application. Call once at startup.

    Args:
        level: Log level (default: resolve_log_level()).
        json_format: Use JSON formatter instead of the human-readable one.
        stream: Output stream (default stderr).
    """
    if level is None:
        level = resolve_log_level()
    if stream is None:
        stream = sys.stderr

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically get_logger(__name__))."""
    return logging.getLogger(name)
