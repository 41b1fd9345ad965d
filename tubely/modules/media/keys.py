"""Storage key and playback URL derivation."""

from tubely.modules.media.probe import AspectClassification

VIDEO_KEY_EXTENSION = "mp4"


def derive_key(classification: AspectClassification | str, video_id: str) -> str:
    """Storage key for a video: ``{classification}/{video_id}.mp4``.

    Re-uploading the same video with the same classification lands on the
    same key and overwrites the previous object.
    """
    prefix = classification.value if isinstance(classification, AspectClassification) else classification
    return f"{prefix}/{video_id}.{VIDEO_KEY_EXTENSION}"


def build_playback_url(bucket: str, region: str, key: str) -> str:
    """Public S3 URL of ``key``."""
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"
