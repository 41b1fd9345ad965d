"""Hand-off of processed files to object storage."""

import asyncio
import logging
from typing import Optional

from tubely.core.metrics import STORAGE_UPLOAD_BYTES
from tubely.core.storage import Storage, StorageResult, get_storage
from tubely.modules.media.errors import StorageFailure

logger = logging.getLogger(__name__)


class StorageUploader:
    """Uploads local files to the configured object store.

    An upload either lands completely under its key or raises; object stores
    give put-object atomicity, so there is no partial state to expose.
    """

    def __init__(self, storage: Optional[Storage] = None):
        self._storage = storage

    @property
    def storage(self) -> Storage:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    async def upload(self, key: str, file_path: str, content_type: str) -> StorageResult:
        """Upload ``file_path`` under ``key``.

        Raises:
            StorageFailure: On any transport or storage-service error
        """
        # boto3 blocks; runs on the default executor
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            self.storage.upload,
            file_path,
            key,
            content_type,
        )

        if not result.success:
            raise StorageFailure(f"Upload of {key} failed: {result.error_message}")

        STORAGE_UPLOAD_BYTES.inc(result.file_size)
        logger.info(
            f"Uploaded {key}",
            extra={"key": key, "file_size": result.file_size, "etag": result.etag},
        )
        return result
