"""
Structured logging for the approval kernel.

Every record under the ``approval_kernel`` logger is written as one JSON
object per line.  Request-scoped identifiers (correlation, contract,
actor, approval, trace) live in context variables so they follow a call
across threads and tasks without being passed explicitly, and are merged
into each record by ``StructuredFormatter``.

Kernel exceptions logged with ``exc_info`` contribute their ``code`` and
public attributes as ``exc_*`` fields.
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
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

ROOT_LOGGER_NAME = "approval_kernel"


class LogContext:
    """Request-scoped log fields backed by context variables."""

    FIELDS: tuple[str, ...] = (
        "correlation_id",
        "contract_id",
        "actor_id",
        "approval_id",
        "trace_id",
    )

    _vars: dict[str, ContextVar[str | None]] = {
        name: ContextVar(f"approval_log_{name}", default=None) for name in FIELDS
    }

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Update the given fields; None leaves a field untouched."""
        for name, value in fields.items():
            if value is not None:
                cls._var(name).set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        values = {name: var.get() for name, var in cls._vars.items()}
        return {name: value for name, value in values.items() if value is not None}

    @classmethod
    def clear(cls) -> None:
        for var in cls._vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a block, then restore them."""
        tokens = [
            (cls._var(name), cls._var(name).set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)

    @classmethod
    def _var(cls, name: str) -> ContextVar[str | None]:
        try:
            return cls._vars[name]
        except KeyError:
            raise ValueError(f"Unknown log context field: {name}") from None


# Attributes every LogRecord carries; anything else came in via ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return repr(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: base fields, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger under the approval_kernel namespace, e.g. ``services.workflow_engine``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the approval_kernel logger. Later calls are no-ops."""
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.propagate = False
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and allow configure_logging to run again. Tests only."""
    global _configured
    with _configure_lock:
        _configured = False
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
