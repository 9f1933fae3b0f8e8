"""Structured JSON logging for the stock kernel.

Every record under the ``stock_kernel`` logger is written as one JSON line
carrying the request context (tenant, store, actor, ...) bound through
LogContext, the record's ``extra`` fields, and for kernel exceptions their
code, kind and structured attributes.
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
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

_LOGGER_PREFIX = "stock_kernel"

_CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "tenant_id",
    "store_id",
    "request_id",
    "batch_id",
)

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """Request-scoped log fields, isolated per thread and per task."""

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set context fields; None leaves a field as it is."""
        for name, val in fields.items():
            if name not in _CONTEXT_VARS:
                raise TypeError(f"unknown log context field {name!r}")
            if val is not None:
                _CONTEXT_VARS[name].set(val)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        ctx: dict[str, str] = {}
        for name, var in _CONTEXT_VARS.items():
            val = var.get()
            if val is not None:
                ctx[name] = val
        return ctx

    @classmethod
    def clear(cls) -> None:
        for var in _CONTEXT_VARS.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the block and restore the previous values after it.

        Values are stringified, so UUIDs can be passed directly.  None values
        and names that are not context fields are skipped.
        """
        tokens = []
        for name, val in fields.items():
            var = _CONTEXT_VARS.get(name)
            if var is not None and val is not None:
                tokens.append((var, var.set(str(val))))
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            for attr in ("code", "kind"):
                if hasattr(exc, attr):
                    payload[f"exc_{attr}"] = getattr(exc, attr)
            # Structured fields of StockKernelError subclasses
            for k, v in vars(exc).items():
                if not k.startswith("_"):
                    payload[f"exc_{k}"] = v
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the stock_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the stock_kernel logger (idempotent).

    ``handler`` defaults to a stderr stream handler.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Undo configure_logging.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
