"""Video service for business logic.

Implements record management, ownership checks, and the two upload paths:
video media (through the ingestion pipeline) and thumbnails.
"""

import asyncio
import base64
import logging
import secrets
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tubely.core.config import settings
from tubely.core.storage import Storage, get_asset_storage
from tubely.modules.media.errors import StorageFailure
from tubely.modules.media.multipart import FormField, validate_upload
from tubely.modules.media.pipeline import VideoUploadPipeline
from tubely.modules.video.models import Video
from tubely.modules.video.repository import VideoRepository
from tubely.modules.video.schemas import THUMBNAIL_CONTENT_TYPES, VideoCreateRequest

logger = logging.getLogger(__name__)


class VideoServiceError(Exception):
    """Base exception for video service errors."""

    pass


class InvalidVideoIdError(VideoServiceError):
    """Raised when a video id is malformed."""

    pass


class VideoNotFoundError(VideoServiceError):
    """Raised when video is not found."""

    pass


class VideoForbiddenError(VideoServiceError):
    """Raised when the caller doesn't own the video."""

    pass


def parse_video_id(raw: str) -> str:
    """Normalize a video id from a URL path.

    Raises:
        InvalidVideoIdError: If ``raw`` is not a UUID
    """
    try:
        return str(uuid.UUID(raw))
    except (ValueError, AttributeError, TypeError):
        raise InvalidVideoIdError("Invalid video ID")


def random_asset_name(extension: str) -> str:
    """Unguessable file name for a public asset."""
    token = base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")
    return f"{token}.{extension}"


class VideoService:
    """Service for video record operations."""

    def __init__(
        self,
        session: AsyncSession,
        pipeline: Optional[VideoUploadPipeline] = None,
        asset_storage: Optional[Storage] = None,
        max_thumbnail_bytes: Optional[int] = None,
    ):
        """Initialize service with database session."""
        self.session = session
        self.max_thumbnail_bytes = (
            max_thumbnail_bytes if max_thumbnail_bytes is not None else settings.MAX_THUMBNAIL_UPLOAD_BYTES
        )
        self.video_repo = VideoRepository(session)
        self._pipeline = pipeline
        self._asset_storage = asset_storage

    @property
    def pipeline(self) -> VideoUploadPipeline:
        if self._pipeline is None:
            self._pipeline = VideoUploadPipeline(self.session)
        return self._pipeline

    @property
    def asset_storage(self) -> Storage:
        if self._asset_storage is None:
            self._asset_storage = get_asset_storage()
        return self._asset_storage

    async def create_video(self, user_id: uuid.UUID, request: VideoCreateRequest) -> Video:
        """Create a draft video record owned by ``user_id``."""
        video = await self.video_repo.create(
            user_id=user_id,
            title=request.title,
            description=request.description,
        )
        logger.info(f"Created video {video.id}", extra={"video_id": video.id, "user_id": str(user_id)})
        return video

    async def get_owned_video(self, video_id: str, user_id: uuid.UUID) -> Video:
        """Get a video and check that ``user_id`` owns it.

        Raises:
            VideoNotFoundError: If no record exists
            VideoForbiddenError: If it belongs to someone else
        """
        video = await self.video_repo.get_by_id(video_id)
        if video is None:
            raise VideoNotFoundError("Couldn't find video")
        if not video.is_owned_by(user_id):
            raise VideoForbiddenError("Not authorized to update this video")
        return video

    async def list_videos(self, user_id: uuid.UUID, limit: int = 100, offset: int = 0) -> list[Video]:
        return await self.video_repo.list_by_user(user_id, limit, offset)

    async def delete_video(self, video: Video) -> None:
        await self.video_repo.delete(video)
        logger.info(f"Deleted video {video.id}", extra={"video_id": video.id})

    async def upload_video(self, video: Video, part: FormField) -> Video:
        """Run the ingestion pipeline for ``video``."""
        result = await self.pipeline.run(video, part)
        return result.video

    async def upload_thumbnail(self, video: Video, part: FormField) -> Video:
        """Store a thumbnail image and point the record at it.

        Raises:
            InvalidUploadError: If the file is missing, too large, or not JPEG/PNG
            StorageFailure: If the asset can't be written
        """
        upload = validate_upload(
            part,
            label="Thumbnail",
            max_bytes=self.max_thumbnail_bytes,
            allowed_types=THUMBNAIL_CONTENT_TYPES.keys(),
        )

        filename = random_asset_name(THUMBNAIL_CONTENT_TYPES[upload.content_type])
        key = f"thumbnails/{filename}"

        await upload.seek(0)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            self.asset_storage.upload_fileobj,
            upload.file,
            key,
            upload.content_type,
        )
        if not result.success:
            raise StorageFailure(f"Could not save thumbnail: {result.error_message}")

        video.thumbnail_url = result.url
        return await self.video_repo.update(video)
