"""Pydantic schemas for the video module.

Defines request/response schemas and the upload acceptance rules.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

VIDEO_FORM_FIELD = "video"
THUMBNAIL_FORM_FIELD = "thumbnail"

VIDEO_CONTENT_TYPE = "video/mp4"
THUMBNAIL_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
}

MAX_TITLE_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 5000


class VideoCreateRequest(BaseModel):
    """Request schema for creating a video record."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)


class VideoResponse(BaseModel):
    """Response schema for a video record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
