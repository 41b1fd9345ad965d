"""Failure taxonomy for the media ingestion pipeline."""

from typing import Optional


class InvalidUploadError(Exception):
    """Raised when an uploaded file is missing, too large, or of the wrong type."""


class MediaPipelineError(Exception):
    """Base exception for server-side pipeline failures."""

    def __init__(self, message: str, stderr: Optional[str] = None, exit_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.stderr = stderr
        self.exit_code = exit_code


class ProbeFailure(MediaPipelineError):
    """Raised when the stream metadata of a file can't be read."""


class RemuxFailure(MediaPipelineError):
    """Raised when the fast-start remux fails."""


class StorageFailure(MediaPipelineError):
    """Raised when the object store rejects or loses an upload."""
