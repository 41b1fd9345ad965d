"""Video upload pipeline.

Runs one upload through validate -> stage -> probe -> remux -> store ->
record update, strictly in that order. Each step starts only after the
previous one succeeded. Transient files are removed on every exit path, and
the record is only touched once the object is in storage.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tubely.core.config import settings
from tubely.core.logging import log_error
from tubely.core.metrics import VIDEO_CLASSIFICATIONS_TOTAL, VIDEO_UPLOADS_TOTAL
from tubely.core.tracing import create_span
from tubely.modules.media.errors import (
    MediaPipelineError,
    ProbeFailure,
    RemuxFailure,
    StorageFailure,
)
from tubely.modules.media.keys import build_playback_url, derive_key
from tubely.modules.media.multipart import FormField, validate_upload
from tubely.modules.media.probe import AspectClassification, MediaProber
from tubely.modules.media.remux import FastStartRemuxer, remuxed_path_for
from tubely.modules.media.staging import TransientFiles, stage_upload, staged_filename
from tubely.modules.media.uploader import StorageUploader
from tubely.modules.video.models import Video
from tubely.modules.video.repository import VideoRepository
from tubely.modules.video.schemas import VIDEO_CONTENT_TYPE

logger = logging.getLogger(__name__)

_FAILURE_OUTCOMES = {
    ProbeFailure: "probe_failed",
    RemuxFailure: "remux_failed",
    StorageFailure: "storage_failed",
}


@dataclass
class PipelineResult:
    """What a successful run produced."""
    video: Video
    classification: AspectClassification
    key: str
    url: str


class VideoUploadPipeline:
    """Orchestrates the ingestion of one uploaded video."""

    def __init__(
        self,
        session: AsyncSession,
        prober: Optional[MediaProber] = None,
        remuxer: Optional[FastStartRemuxer] = None,
        uploader: Optional[StorageUploader] = None,
        staging_dir: Optional[str] = None,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        max_upload_bytes: Optional[int] = None,
    ):
        self.video_repo = VideoRepository(session)
        self.prober = prober or MediaProber()
        self.remuxer = remuxer or FastStartRemuxer()
        self.uploader = uploader or StorageUploader()
        self.staging_dir = staging_dir or settings.UPLOAD_TMP_DIR
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.region = region or settings.STORAGE_REGION
        self.max_upload_bytes = (
            max_upload_bytes if max_upload_bytes is not None else settings.MAX_VIDEO_UPLOAD_BYTES
        )

    async def run(self, video: Video, part: FormField) -> PipelineResult:
        """Ingest ``part`` as the media of ``video``.

        The caller has already authenticated the request and checked that it
        owns ``video``.

        Raises:
            InvalidUploadError: If the file is missing, too large, or not MP4
            ProbeFailure: If the staged file can't be classified
            RemuxFailure: If the fast-start remux fails
            StorageFailure: If the object store rejects the upload
        """
        upload = validate_upload(
            part,
            label="Video",
            max_bytes=self.max_upload_bytes,
            allowed_types={VIDEO_CONTENT_TYPE},
            type_error="Invalid file type, only MP4 is allowed",
        )

        try:
            with TransientFiles(self.staging_dir) as transient:
                result = await self._process(video, upload, transient)
        except MediaPipelineError as e:
            VIDEO_UPLOADS_TOTAL.labels(outcome=_FAILURE_OUTCOMES.get(type(e), "error")).inc()
            log_error(logger, f"Video upload failed for {video.id}: {e}", e, video_id=video.id)
            raise
        except Exception as e:
            VIDEO_UPLOADS_TOTAL.labels(outcome="error").inc()
            log_error(logger, f"Video upload crashed for {video.id}", e, video_id=video.id)
            raise

        VIDEO_UPLOADS_TOTAL.labels(outcome="success").inc()
        return result

    async def _process(self, video: Video, upload, transient: TransientFiles) -> PipelineResult:
        staged_path = transient.claim(staged_filename(video.id))
        with create_span("video_upload.stage", {"video.id": video.id}):
            size = await stage_upload(upload, staged_path)
        logger.info(f"Staged {size} bytes for {video.id}", extra={"video_id": video.id, "bytes": size})

        with create_span("video_upload.probe", {"video.id": video.id}):
            classification = await self.prober.classify(staged_path)
        VIDEO_CLASSIFICATIONS_TOTAL.labels(classification=classification.value).inc()

        transient.track(remuxed_path_for(staged_path))
        with create_span("video_upload.remux", {"video.id": video.id}):
            processed_path = await self.remuxer.remux(staged_path)
        if processed_path not in transient.paths:
            transient.track(processed_path)

        key = derive_key(classification, video.id)
        with create_span("video_upload.store", {"video.id": video.id, "storage.key": key}):
            await self.uploader.upload(key, processed_path, VIDEO_CONTENT_TYPE)

        url = build_playback_url(self.bucket, self.region, key)
        video.video_url = url
        video = await self.video_repo.update(video)
        logger.info(f"Video {video.id} available at {url}", extra={"video_id": video.id, "key": key})

        return PipelineResult(video=video, classification=classification, key=key, url=url)
