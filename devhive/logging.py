"""
DevHive Structured Logging

Structured logging with context propagation (project, sprint, worker),
JSON formatting and sensitive data redaction.
"""

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Generator, Optional


STANDARD_FIELDS = ("project", "sprint_id", "worker")

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


def _json_fallback(value: Any) -> str:  # pragma: no cover - formatting
    try:
        return str(value)
    except Exception:
        return repr(value)


_REDACTED = "[REDACTED]"
_SECRET_KEY_MARKERS = ("token", "secret", "password", "api_key", "apikey", "credential")


def _looks_sensitive_key(key: str) -> bool:
    lower = (key or "").lower()
    return any(marker in lower for marker in _SECRET_KEY_MARKERS)


def _sanitize_for_logging(key: str, value: Any) -> Any:
    """Redact values whose key names look like secrets."""
    if _looks_sensitive_key(key):
        return _REDACTED
    if isinstance(value, dict):
        return {k: _sanitize_for_logging(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_for_logging(key, v) for v in value]
    return value


_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("DEVHIVE_LOG_CONTEXT", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current log context."""
    return dict(_LOG_CONTEXT.get() or {})


@contextmanager
def log_context(**fields: Any) -> Generator[None, None, None]:
    """Temporarily add fields to the log context."""
    token = _LOG_CONTEXT.set({**get_log_context(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


class ContextFilter(logging.Filter):
    """
    Ensures the standard context fields exist on every log record.

    Context fields set through ``log_context`` are copied onto the record;
    anything still missing gets a "-" default so formatters can rely on it.
    """

    def __init__(self, defaults: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        self.defaults = {field: "-" for field in STANDARD_FIELDS}
        if defaults:
            self.defaults.update({k: v for k, v in defaults.items() if v is not None})

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_log_context()
        for key, value in ctx.items():
            if value is None or key in _RESERVED_LOG_RECORD_ATTRS:
                continue
            if not hasattr(record, key):
                setattr(record, key, value)
        for key, default in self.defaults.items():
            if not hasattr(record, key):
                setattr(record, key, default)
        return True


class JsonFormatter(logging.Formatter):
    """JSON log formatter that includes all context fields and redacts secrets."""

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting
        data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in STANDARD_FIELDS:
            data[field] = getattr(record, field, "-")
        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_ATTRS or key in data:
                continue
            data[key] = value
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        sanitized = {k: _sanitize_for_logging(k, v) for k, v in data.items()}
        return json.dumps(sanitized, default=_json_fallback)


def setup_logging(level: str = "WARNING", json_output: bool = False) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Log level name; unknown names fall back to WARNING
        json_output: If True, use JSON formatting; otherwise use text format

    Returns:
        The devhive logger instance
    """
    handler = logging.StreamHandler()
    handler.addFilter(ContextFilter())
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s "
                "project=%(project)s sprint=%(sprint_id)s worker=%(worker)s"
            )
        )

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(getattr(logging, str(level).upper(), logging.WARNING))
    root.addHandler(handler)
    return logging.getLogger("devhive")


def get_logger(name: str = "devhive") -> logging.Logger:
    return logging.getLogger(name)


def init_cli_logging(level: Optional[str] = None, json_output: bool = False) -> logging.Logger:
    """Initialize logging for the CLI; quiet (WARNING) unless told otherwise."""
    return setup_logging(level or "WARNING", json_output=json_output)


def log_extra(
    *,
    project: Optional[str] = None,
    sprint_id: Optional[str] = None,
    worker: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """
    Build a consistent extra dict for structured logging.

    Only non-None values are included so defaults from ContextFilter still apply.

    Example:
        logger.info("Worker registered", extra=log_extra(worker="w1", branch="feat/x"))
    """
    payload: Dict[str, Any] = {}
    if project is not None:
        payload["project"] = project
    if sprint_id is not None:
        payload["sprint_id"] = sprint_id
    if worker is not None:
        payload["worker"] = worker
    payload.update({k: v for k, v in extra.items() if v is not None})
    return payload


# Standard exit codes for the CLI
EXIT_RUNTIME_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_BUSY = 3
