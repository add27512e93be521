"""
Mun CLI Structured Logging

Provides structured logging with context propagation and JSON formatting.
Logs are written to stderr so stdout only carries program output.
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from enum import IntEnum
from typing import Any, Dict, Generator, Optional


STANDARD_FIELDS = ("command", "manifest", "library", "entry")

_RESERVED_LOG_RECORD_ATTRS = set(
    logging.LogRecord(
        name="",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__.keys()
)
_RESERVED_LOG_RECORD_ATTRS.update({"asctime", "message"})


def _json_fallback(value: Any) -> str:  # pragma: no cover - defensive
    """Best-effort conversion for non-JSON-serializable values (Path, bytes, etc.)."""
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


# Context variable for log context propagation
_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("MUN_LOG_CONTEXT", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current log context to avoid accidental mutation."""
    return dict(_LOG_CONTEXT.get() or {})


@contextmanager
def log_context(**fields: Any) -> Generator[None, None, None]:
    """Context manager for temporarily adding fields to the log context."""
    token = _LOG_CONTEXT.set({**get_log_context(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


class ContextFilter(logging.Filter):
    """
    Logging filter that ensures all standard context fields exist on every log record.

    Copies contextvars-based fields onto log records and fills in "-" for
    missing standard fields so formatters can rely on them.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_log_context()
        for key, value in ctx.items():
            if key in _RESERVED_LOG_RECORD_ATTRS:
                continue
            if not hasattr(record, key):
                setattr(record, key, value)

        for key in STANDARD_FIELDS:
            if not hasattr(record, key):
                setattr(record, key, "-")
        return True


class JsonFormatter(logging.Formatter):
    """JSON log formatter that includes all context fields."""

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting
        data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in STANDARD_FIELDS:
            data[field] = getattr(record, field, "-")

        # Everything passed via `extra=`
        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_ATTRS or key in data:
                continue
            data[key] = value

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data, default=_json_fallback)


def setup_logging(level: Optional[str] = None, json_output: bool = False) -> logging.Logger:
    """
    Configure the root logger with structured logging support.

    Args:
        level: Log level (default: from MUN_LOG_LEVEL or WARNING)
        json_output: If True, use JSON formatting; otherwise use text format

    Returns:
        The muncli logger instance
    """
    resolved_level = level or os.environ.get("MUN_LOG_LEVEL") or "WARNING"

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(ContextFilter())

    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s "
                "command=%(command)s manifest=%(manifest)s library=%(library)s"
            )
        )

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(getattr(logging, str(resolved_level).upper(), logging.WARNING))
    root.addHandler(handler)

    return logging.getLogger("muncli")


def get_logger(name: str = "muncli") -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def log_extra(
    *,
    command: Optional[str] = None,
    manifest: Optional[Any] = None,
    library: Optional[Any] = None,
    entry: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """
    Build a consistent extra dict for structured logging.

    Only non-None values are included so defaults from ContextFilter still apply.

    Example:
        logger.info("library_reloaded", extra=log_extra(library=path, duration_ms=3))
    """
    payload: Dict[str, Any] = {}
    if command is not None:
        payload["command"] = command
    if manifest is not None:
        payload["manifest"] = str(manifest)
    if library is not None:
        payload["library"] = str(library)
    if entry is not None:
        payload["entry"] = entry
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


# Standard exit codes for the CLI
EXIT_OK = 0
EXIT_ERROR = 1


class ExitStatus(IntEnum):
    """Process outcome of a command."""
    SUCCESS = EXIT_OK
    ERROR = EXIT_ERROR

    @classmethod
    def from_bool(cls, ok: bool) -> "ExitStatus":
        return cls.SUCCESS if ok else cls.ERROR
