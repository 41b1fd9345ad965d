"""Video API router.

Record management plus the video and thumbnail upload endpoints. Upload
handlers authenticate and check ownership before the request body is parsed.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tubely.core.database import get_db
from tubely.core.logging import log_error
from tubely.modules.auth.jwt import get_current_user_id
from tubely.modules.media.errors import (
    InvalidUploadError,
    ProbeFailure,
    RemuxFailure,
    StorageFailure,
)
from tubely.modules.media.multipart import decode_file_field
from tubely.modules.video.models import Video
from tubely.modules.video.schemas import (
    THUMBNAIL_FORM_FIELD,
    VIDEO_FORM_FIELD,
    VideoCreateRequest,
    VideoResponse,
)
from tubely.modules.video.service import (
    InvalidVideoIdError,
    VideoForbiddenError,
    VideoNotFoundError,
    VideoService,
    parse_video_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/videos", tags=["videos"])


def get_video_service(db: AsyncSession = Depends(get_db)) -> VideoService:
    return VideoService(db)


async def _get_owned_video(service: VideoService, raw_video_id: str, user_id: uuid.UUID) -> Video:
    try:
        video_id = parse_video_id(raw_video_id)
        return await service.get_owned_video(video_id, user_id)
    except InvalidVideoIdError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VideoForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.post("", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    request: VideoCreateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    """Create a video record to upload media into."""
    return await service.create_video(user_id, request)


@router.get("", response_model=list[VideoResponse])
async def list_videos(
    limit: int = 100,
    offset: int = 0,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    """List the caller's videos, newest first."""
    return await service.list_videos(user_id, limit, offset)


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    """Get video by ID."""
    return await _get_owned_video(service, video_id, user_id)


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    video_id: str,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    """Delete a video record."""
    video = await _get_owned_video(service, video_id, user_id)
    await service.delete_video(video)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{video_id}/upload", response_model=VideoResponse)
async def upload_video(
    video_id: str,
    request: Request,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    """Upload MP4 media for a video.

    The file is classified by aspect ratio, remuxed for fast start, and
    stored; the record's ``video_url`` is set on success.
    """
    video = await _get_owned_video(service, video_id, user_id)

    async with request.form() as form:
        part = decode_file_field(form, VIDEO_FORM_FIELD)
        try:
            video = await service.upload_video(video, part)
        except InvalidUploadError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except ProbeFailure:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Couldn't read video metadata",
            )
        except RemuxFailure:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Couldn't process video for fast start",
            )
        except StorageFailure:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Couldn't upload video to storage",
            )

    return video


@router.post("/{video_id}/thumbnail", response_model=VideoResponse)
async def upload_thumbnail(
    video_id: str,
    request: Request,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: VideoService = Depends(get_video_service),
):
    """Upload a JPEG or PNG thumbnail for a video."""
    video = await _get_owned_video(service, video_id, user_id)

    async with request.form() as form:
        part = decode_file_field(form, THUMBNAIL_FORM_FIELD)
        try:
            video = await service.upload_thumbnail(video, part)
        except InvalidUploadError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        except StorageFailure as e:
            log_error(logger, f"Thumbnail upload failed for {video.id}: {e}", e, video_id=video.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Couldn't save thumbnail",
            )

    return video
