"""HTTP middleware: metrics, correlation IDs, server spans and access logs."""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware

from tubely.core.logging import bind_correlation_id, get_correlation_id, reset_correlation_id
from tubely.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)
from tubely.core.tracing import create_span

CORRELATION_ID_HEADER = "X-Correlation-ID"

_ID_SEGMENT_RE = re.compile(
    r"/(?:[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}|\d+)(?=/|$)",
    flags=re.IGNORECASE,
)

access_logger = logging.getLogger("tubely.requests")


def normalize_path(path: str) -> str:
    """Collapse video ids and numeric ids so metric labels stay bounded."""
    return _ID_SEGMENT_RE.sub("/{id}", path)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts requests and observes their latency per method and route."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        labels = {"method": request.method, "endpoint": normalize_path(request.url.path)}
        in_progress = HTTP_REQUESTS_IN_PROGRESS.labels(**labels)
        in_progress.inc()

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            HTTP_REQUEST_DURATION_SECONDS.labels(**labels).observe(time.perf_counter() - start)
            HTTP_REQUESTS_TOTAL.labels(**labels, status_code=str(status_code)).inc()
            in_progress.dec()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the caller's ``X-Correlation-ID`` (or a fresh one) to the request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
        token = bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            reset_correlation_id(token)


class TracingMiddleware(BaseHTTPMiddleware):
    """Wraps each request in a server span."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        attributes = {
            "http.method": request.method,
            "http.route": normalize_path(request.url.path),
            "http.target": request.url.path,
            "http.scheme": request.url.scheme,
            "http.user_agent": request.headers.get("user-agent", ""),
            "correlation_id": get_correlation_id(),
        }
        with create_span(
            f"{request.method} {attributes['http.route']}",
            attributes=attributes,
            kind=trace.SpanKind.SERVER,
        ) as span:
            response = await call_next(request)
            span.set_attribute("http.status_code", response.status_code)
            return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access log line per request, plus one for requests that blow up."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "content_length": request.headers.get("content-length"),
        }

        try:
            response = await call_next(request)
        except Exception:
            access_logger.exception("Request failed", extra={**fields, "duration_ms": _elapsed_ms(start)})
            raise

        access_logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={**fields, "status_code": response.status_code, "duration_ms": _elapsed_ms(start)},
        )
        return response
