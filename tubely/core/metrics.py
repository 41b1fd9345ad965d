"""Prometheus metrics for the ingestion service."""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)

REGISTRY = CollectorRegistry()

# Check if running in multiprocess mode (e.g., with gunicorn)
if "PROMETHEUS_MULTIPROC_DIR" in os.environ or "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "tubely_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Media Tooling Metrics
# ============================================
MEDIA_COMMANDS_TOTAL = Counter(
    "media_commands_total",
    "External media command invocations",
    ["command", "outcome"],  # outcome: success, failed, timeout, spawn_error
    registry=REGISTRY,
)

MEDIA_COMMAND_DURATION_SECONDS = Histogram(
    "media_command_duration_seconds",
    "Wall time of external media commands",
    ["command"],
    buckets=[0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
    registry=REGISTRY,
)


# ============================================
# Upload Pipeline Metrics
# ============================================
VIDEO_UPLOADS_TOTAL = Counter(
    "video_uploads_total",
    "Video upload pipeline runs by outcome",
    ["outcome"],  # success, probe_failed, remux_failed, storage_failed, error
    registry=REGISTRY,
)

VIDEO_CLASSIFICATIONS_TOTAL = Counter(
    "video_classifications_total",
    "Uploaded videos by aspect classification",
    ["classification"],
    registry=REGISTRY,
)

STORAGE_UPLOAD_BYTES = Counter(
    "storage_upload_bytes_total",
    "Bytes written to object storage",
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metrics."""
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
