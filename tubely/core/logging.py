"""Structured logging with correlation IDs.

Every log record carries the correlation ID of the request that produced it,
so the lines emitted by one upload (staging, probe, remux, storage, cleanup)
can be stitched back together.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Optional

from tubely.core.tracing import current_trace_ids

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "correlation_id", "taskName"}

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "boto3", "s3transfer")


def get_correlation_id() -> str:
    """Correlation ID of the current context.

    Outside a request, falls back to the active trace ID, then to a fresh
    UUID that sticks for the rest of the context.
    """
    cid = _correlation_id.get()
    if cid is not None:
        return cid

    trace_id, _ = current_trace_ids()
    if trace_id:
        return trace_id

    cid = str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid


def bind_correlation_id(correlation_id: str) -> Token:
    """Set the correlation ID; pass the returned token to ``reset_correlation_id``."""
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token: Token) -> None:
    _correlation_id.reset(token)


class StructuredFormatter(logging.Formatter):
    """Renders records as one JSON object per line."""

    def __init__(self, include_stack_trace: bool = True):
        super().__init__()
        self.include_stack_trace = include_stack_trace

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        trace_id, span_id = current_trace_ids()
        if trace_id:
            payload["trace_id"] = trace_id
            payload["span_id"] = span_id

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self._exception(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str)

    def _exception(self, exc_info) -> dict[str, Any]:
        exc_type, exc, tb = exc_info
        info: dict[str, Any] = {"type": exc_type.__name__, "message": str(exc)}
        if self.include_stack_trace and tb is not None:
            info["stack_trace"] = traceback.format_exception(exc_type, exc, tb)
        return info


class CorrelationIdFilter(logging.Filter):
    """Stamps each record with the current correlation ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def setup_logging(level: str = "INFO", json_format: bool = True, include_stack_trace: bool = True) -> None:
    """Route all logging to stdout, as JSON unless ``json_format`` is off."""
    log_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIdFilter())
    if json_format:
        handler.setFormatter(StructuredFormatter(include_stack_trace=include_stack_trace))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"
        ))

    root = logging.getLogger()
    root.setLevel(log_level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error with the correlation ID and, if given, the exception's traceback."""
    extra["correlation_id"] = get_correlation_id()
    if exception is not None:
        logger.error(message, exc_info=(type(exception), exception, exception.__traceback__), extra=extra)
    else:
        logger.error(message, extra=extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    """Log a warning with the correlation ID."""
    extra["correlation_id"] = get_correlation_id()
    logger.warning(message, extra=extra)
