"""Decoding and validation of uploaded file fields.

A multipart form field is decoded into exactly one of three shapes before
any pipeline logic runs: a file part, a missing field, or a field that holds
plain text instead of a file.
"""

import os
from dataclasses import dataclass
from typing import Collection, Optional, Union

from starlette.datastructures import FormData, UploadFile

from tubely.modules.media.errors import InvalidUploadError


@dataclass(frozen=True)
class FilePart:
    """The field carries a file."""
    field: str
    upload: UploadFile


@dataclass(frozen=True)
class MissingField:
    """The field is absent from the form."""
    field: str


@dataclass(frozen=True)
class NotAFile:
    """The field is present but holds a plain value."""
    field: str


FormField = Union[FilePart, MissingField, NotAFile]


def decode_file_field(form: FormData, field: str) -> FormField:
    """Classify ``form[field]``."""
    value = form.get(field)
    if value is None:
        return MissingField(field)
    if isinstance(value, UploadFile):
        return FilePart(field, value)
    return NotAFile(field)


def upload_size(upload: UploadFile) -> int:
    """Size of an uploaded file in bytes."""
    if upload.size is not None:
        return upload.size
    position = upload.file.tell()
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(position)
    return size


def _format_limit(max_bytes: int) -> str:
    for unit, shift in (("GB", 30), ("MB", 20), ("KB", 10)):
        if max_bytes >= 1 << shift and max_bytes % (1 << shift) == 0:
            return f"{max_bytes >> shift}{unit}"
    return f"{max_bytes} bytes"


def validate_upload(
    part: FormField,
    label: str,
    max_bytes: int,
    allowed_types: Collection[str],
    type_error: Optional[str] = None,
) -> UploadFile:
    """Check an uploaded file against size and media-type rules.

    Args:
        part: Decoded form field
        label: Human name of the file for error messages ("Video", "Thumbnail")
        max_bytes: Largest accepted size, inclusive
        allowed_types: Accepted declared media types (exact match)
        type_error: Message for a rejected media type

    Returns:
        The uploaded file

    Raises:
        InvalidUploadError: If the field is missing, not a file, too large, or of the wrong type
    """
    if isinstance(part, MissingField):
        raise InvalidUploadError(f"{label} file missing")
    if isinstance(part, NotAFile):
        raise InvalidUploadError(f"Field '{part.field}' must be a file upload")

    upload = part.upload
    if upload_size(upload) > max_bytes:
        raise InvalidUploadError(f"File exceeds size limit ({_format_limit(max_bytes)})")

    content_type = upload.content_type or ""
    if not content_type:
        raise InvalidUploadError(f"Missing Content-Type for {label.lower()}")
    if content_type not in allowed_types:
        raise InvalidUploadError(type_error or f"Invalid {label.lower()} file type")

    return upload
