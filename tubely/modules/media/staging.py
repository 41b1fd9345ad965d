"""Request-scoped local working files.

Every transient file is registered for removal at the moment its path is
claimed, before anything is written to it. Leaving the ``TransientFiles``
block, for any reason, removes every path registered so far.
"""

import logging
import os
from contextlib import ExitStack
from pathlib import Path

from starlette.datastructures import UploadFile

from tubely.core.logging import log_warning

logger = logging.getLogger(__name__)

STAGING_CHUNK_SIZE = 1024 * 1024  # 1 MB
STAGED_EXTENSION = "mp4"


def staged_filename(video_id: str) -> str:
    """Local name of a staged upload; one per video id."""
    return f"{video_id}.{STAGED_EXTENSION}"


def discard_file(path: str) -> None:
    """Remove ``path``; never raises."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log_warning(logger, f"Could not remove transient file {path}: {e}", path=path)


class TransientFiles:
    """Tracks local files that must not outlive the current request."""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self._stack = ExitStack()
        self._paths: list[str] = []

    @property
    def paths(self) -> list[str]:
        return list(self._paths)

    def track(self, path: str) -> str:
        """Register ``path`` for removal on exit and return it."""
        self._stack.callback(discard_file, path)
        self._paths.append(path)
        return path

    def claim(self, filename: str) -> str:
        """Claim ``filename`` inside the staging directory."""
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.track(str(self.directory / filename))

    def cleanup(self) -> None:
        self._stack.close()

    def __enter__(self) -> "TransientFiles":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.cleanup()
        return False


async def stage_upload(upload: UploadFile, destination: str) -> int:
    """Copy an uploaded file to ``destination``, replacing any stale file.

    Returns:
        Number of bytes written
    """
    await upload.seek(0)
    written = 0
    with open(destination, "wb") as out:
        while True:
            chunk = await upload.read(STAGING_CHUNK_SIZE)
            if not chunk:
                break
            out.write(chunk)
            written += len(chunk)
    return written
