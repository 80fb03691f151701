"""
Logging utilities for the party ledger pipeline.

Provides structured logging with correlation support so every line emitted
during one bulk import or snapshot transfer can be traced back to it
(import_id → batch_index → record).
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

CONTEXT_FIELDS = ("import_id", "transfer_id", "batch_index", "mode", "store")

# Task-local, so concurrent imports on one event loop never share context
_CURRENT_CONTEXT: "contextvars.ContextVar[Dict[str, Any]]" = contextvars.ContextVar(
    "ledger_log_context", default={}
)


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Correlation fields set on a record, in CONTEXT_FIELDS order."""
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs JSON-structured log lines.

    Each log line includes:
    - Standard log fields (timestamp, level, message, logger)
    - Correlation fields if present (import_id, batch_index, ...)
    """

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_entry = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_timestamp:
            log_entry["timestamp"] = datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat()

        log_entry.update(_record_context(record))

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter that outputs human-readable log lines with correlation context.

    Format: TIMESTAMP [LEVEL] LOGGER - MESSAGE [import_id=X batch_index=Y]
    """

    def __init__(self, include_timestamp: bool = True):
        if include_timestamp:
            fmt = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
        else:
            fmt = "[%(levelname)s] %(name)s - %(message)s"
        super().__init__(fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)

        context = _record_context(record)
        if not context:
            return base
        return base + " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"


def configure_logging(
    level: int = logging.INFO,
    structured: bool = False,
    include_timestamp: bool = True,
) -> None:
    """
    Configure the "ledger" package logger.

    Only adds a handler if none exist, so repeated calls are harmless.

    Args:
        level: Logging level (default: INFO)
        include_timestamp: Whether to include timestamp in log lines
        structured: If True, output JSON lines; otherwise human-readable
    """
    ledger_logger = logging.getLogger("ledger")
    ledger_logger.setLevel(level)

    if not ledger_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        if structured:
            handler.setFormatter(StructuredFormatter(include_timestamp=include_timestamp))
        else:
            handler.setFormatter(HumanReadableFormatter(include_timestamp=include_timestamp))
        ledger_logger.addHandler(handler)


class CorrelationContext:
    """
    Context manager for adding correlation fields to log records.

    Example:
        >>> with CorrelationContext(import_id="abc"):
        ...     log_with_context(logger, logging.INFO, "Batch done", batch_index=2)
    """

    def __init__(self, **fields: Any):
        self.context = {k: v for k, v in fields.items() if v is not None}
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> "CorrelationContext":
        merged = {**_CURRENT_CONTEXT.get(), **self.context}
        self._token = _CURRENT_CONTEXT.set(merged)
        return self

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _CURRENT_CONTEXT.reset(self._token)
            self._token = None

    @classmethod
    def get_current(cls) -> Dict[str, Any]:
        """Get the current correlation context."""
        return dict(_CURRENT_CONTEXT.get())


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    **extra: Any,
) -> None:
    """
    Log a message with the current correlation context merged with extra fields.
    """
    context = CorrelationContext.get_current()
    context.update(extra)
    logger.log(level, message, extra=context)
