"""
Structured JSON logging for the payables system.

Every log line is one JSON object::

    {"ts": "...", "level": "INFO", "logger": "payables.modules.invoices.service",
     "message": "invoice_approved", "invoice_id": "...", "actor": "reviewer.a",
     "approval_level": 1, "status": "pending"}

``message`` is a stable event name, never prose.  Event data travels in
``extra``; keys that collide with ``LogRecord`` attributes or with the
envelope (``ts``, ``level``, ``logger``, ``message``) are dropped, so use
names like ``approval_level`` rather than ``level``.

``LogContext`` carries the fields shared by every line of one operation
(``correlation_id``, ``actor``, ``invoice_id``, ``job_name``) in a context
variable, so nested calls and scheduler threads don't have to repeat them.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "payables"

_CONTEXT_FIELDS = ("correlation_id", "actor", "invoice_id", "job_name")
_context: ContextVar[dict[str, str]] = ContextVar("payables_log_context", default={})


class LogContext:
    """Operation-scoped log fields (thread and task local)."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """
        Add fields for the duration of a ``with`` block.

        ``None`` values are ignored; unknown names raise ``TypeError``.
        The previous context is restored on exit.
        """
        unknown = set(fields) - set(_CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _context.set(merged)
        try:
            yield
        finally:
            _context.reset(token)


_RESERVED_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName", "ts", "level", "logger"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        payload.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RESERVED_KEYS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        # PayablesError subclasses keep their context as public attributes
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for key, value in vars(exc).items():
            if not key.startswith("_") and key != "code":
                fields[f"exc_{key}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``payables.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``payables`` logger.  Only the first call acts."""
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``.  Tests only."""
    global _configured
    with _configure_lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
