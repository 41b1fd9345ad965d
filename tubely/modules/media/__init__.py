"""Media ingestion: probing, fast-start remuxing, staging and storage hand-off."""

from tubely.modules.media.errors import (
    InvalidUploadError,
    MediaPipelineError,
    ProbeFailure,
    RemuxFailure,
    StorageFailure,
)
from tubely.modules.media.keys import build_playback_url, derive_key
from tubely.modules.media.probe import AspectClassification, MediaProber, classify_aspect_ratio
from tubely.modules.media.remux import FastStartRemuxer

__all__ = [
    "InvalidUploadError",
    "MediaPipelineError",
    "ProbeFailure",
    "RemuxFailure",
    "StorageFailure",
    "build_playback_url",
    "derive_key",
    "AspectClassification",
    "MediaProber",
    "classify_aspect_ratio",
    "FastStartRemuxer",
]
