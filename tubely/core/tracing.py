"""OpenTelemetry tracing for requests and upload pipeline stages."""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from opentelemetry import trace
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.trace import Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

logger = logging.getLogger(__name__)

TRACER_NAME = "tubely"

_provider: Optional[TracerProvider] = None


def _otlp_exporter(endpoint: str) -> Optional[SpanExporter]:
    # The OTLP exporter ships as the optional ``otlp`` extra
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    except ImportError:
        logger.warning(f"OTLP endpoint {endpoint} configured but exporter not installed")
        return None
    return OTLPSpanExporter(endpoint=endpoint)


def setup_tracing(
    service_name: str,
    service_version: str,
    environment: str = "development",
    otlp_endpoint: Optional[str] = None,
    enable_console_export: bool = False,
) -> None:
    """Install the global tracer provider.

    Args:
        service_name: Reported ``service.name``
        service_version: Reported ``service.version``
        environment: Reported ``deployment.environment``
        otlp_endpoint: Collector endpoint; spans stay in-process when unset
        enable_console_export: Also print finished spans to stdout
    """
    global _provider

    _provider = TracerProvider(
        resource=Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
            "deployment.environment": environment,
        })
    )

    exporters: list[SpanExporter] = []
    if otlp_endpoint:
        exporter = _otlp_exporter(otlp_endpoint)
        if exporter is not None:
            exporters.append(exporter)
    if enable_console_export:
        exporters.append(ConsoleSpanExporter())

    for exporter in exporters:
        _provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(_provider)
    set_global_textmap(TraceContextTextMapPropagator())
    logger.info(
        f"Tracing initialized for {service_name} v{service_version}",
        extra={"exporters": [type(e).__name__ for e in exporters]},
    )


def current_trace_ids() -> tuple[Optional[str], Optional[str]]:
    """``(trace_id, span_id)`` of the active span as hex, or ``(None, None)``."""
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return None, None
    return format(context.trace_id, "032x"), format(context.span_id, "016x")


@contextmanager
def create_span(
    name: str,
    attributes: Optional[dict[str, Any]] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
) -> Iterator[trace.Span]:
    """Run the block inside a span; an escaping exception marks it failed."""
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(
        name,
        kind=kind,
        attributes=attributes or {},
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


def shutdown_tracing() -> None:
    """Flush pending spans."""
    if _provider is not None:
        _provider.shutdown()
