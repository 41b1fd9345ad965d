"""Object storage for processed videos and public assets.

Two backends: S3-compatible object stores (AWS S3, MinIO) and a local
directory. Writes never raise on transport or service errors; the outcome is
reported through ``StorageResult`` and the caller decides what a failed write
means.
"""

import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from tubely.core.config import settings

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class StorageResult:
    """Outcome of a single write."""
    success: bool
    key: str
    url: str
    file_size: int = 0
    etag: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def failed(cls, key: str, error: Exception) -> "StorageResult":
        return cls(success=False, key=key, url="", error_message=str(error))


@dataclass
class StorageConfig:
    """Where and how objects are written."""
    backend: str  # s3, minio, aws or local
    bucket: str = ""
    region: str = ""
    access_key: str = ""
    secret_key: str = ""
    endpoint_url: Optional[str] = None
    use_ssl: bool = True
    local_path: str = "./storage"
    public_base_url: Optional[str] = None

    @classmethod
    def from_settings(cls) -> "StorageConfig":
        return cls(
            backend=settings.STORAGE_BACKEND,
            bucket=settings.STORAGE_BUCKET,
            region=settings.STORAGE_REGION,
            access_key=settings.STORAGE_ACCESS_KEY,
            secret_key=settings.STORAGE_SECRET_KEY,
            endpoint_url=settings.STORAGE_ENDPOINT_URL,
            use_ssl=settings.STORAGE_USE_SSL,
            local_path=settings.LOCAL_STORAGE_PATH,
        )


def _stream_size(fileobj: BinaryIO) -> int:
    fileobj.seek(0, os.SEEK_END)
    size = fileobj.tell()
    fileobj.seek(0)
    return size


class StorageBackend(ABC):
    """A place objects can be written to by key."""

    def upload(self, file_path: str, key: str, content_type: str = DEFAULT_CONTENT_TYPE) -> StorageResult:
        """Write the local file at ``file_path`` under ``key``."""
        try:
            with open(file_path, "rb") as f:
                return self.upload_fileobj(f, key, content_type)
        except OSError as e:
            return StorageResult.failed(key, e)

    @abstractmethod
    def upload_fileobj(self, fileobj: BinaryIO, key: str, content_type: str = DEFAULT_CONTENT_TYPE) -> StorageResult:
        """Write the whole of ``fileobj`` under ``key``."""

    @abstractmethod
    def get_url(self, key: str) -> str:
        """URL clients use to fetch ``key``."""


class LocalStorage(StorageBackend):
    """Objects as files under a root directory."""

    def __init__(self, config: StorageConfig):
        self.root = Path(config.local_path)
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = config.public_base_url

    def _path(self, key: str) -> Path:
        return self.root / key

    def upload_fileobj(self, fileobj: BinaryIO, key: str, content_type: str = DEFAULT_CONTENT_TYPE) -> StorageResult:
        target = self._path(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as out:
                shutil.copyfileobj(fileobj, out)
            size = target.stat().st_size
        except OSError as e:
            return StorageResult.failed(key, e)
        return StorageResult(success=True, key=key, url=self.get_url(key), file_size=size)

    def get_url(self, key: str) -> str:
        if not self.public_base_url:
            return self._path(key).absolute().as_uri()
        return f"{self.public_base_url.rstrip('/')}/{key}"


class S3Storage(StorageBackend):
    """S3 or an S3-compatible store such as MinIO."""

    def __init__(self, config: StorageConfig, client: Any = None):
        self.config = config
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("s3", **self._client_kwargs())
        return self._client

    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"region_name": self.config.region or "us-east-1"}
        if self.config.access_key and self.config.secret_key:
            kwargs["aws_access_key_id"] = self.config.access_key
            kwargs["aws_secret_access_key"] = self.config.secret_key
        if self.config.endpoint_url:
            # MinIO and friends: path-style addressing
            kwargs["endpoint_url"] = self.config.endpoint_url
            kwargs["use_ssl"] = self.config.use_ssl
            kwargs["config"] = BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"})
        return kwargs

    def upload_fileobj(self, fileobj: BinaryIO, key: str, content_type: str = DEFAULT_CONTENT_TYPE) -> StorageResult:
        try:
            size = _stream_size(fileobj)
            response = self.client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=fileobj,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError, OSError) as e:
            return StorageResult.failed(key, e)

        return StorageResult(
            success=True,
            key=key,
            url=self.get_url(key),
            file_size=size,
            etag=response.get("ETag", "").strip('"') or None,
        )

    def get_url(self, key: str) -> str:
        if self.config.endpoint_url:
            return f"{self.config.endpoint_url.rstrip('/')}/{self.config.bucket}/{key}"
        return f"https://{self.config.bucket}.s3.{self.config.region}.amazonaws.com/{key}"


_BACKENDS = {
    "local": LocalStorage,
    "s3": S3Storage,
    "minio": S3Storage,
    "aws": S3Storage,
}


class Storage:
    """Front door to whichever backend the configuration names."""

    _default: Optional["Storage"] = None

    def __init__(self, config: Optional[StorageConfig] = None, backend: Optional[StorageBackend] = None):
        """Initialize storage.

        Args:
            config: Backend configuration (read from settings when omitted)
            backend: Ready-made backend, bypassing ``config.backend``
        """
        self.config = config or StorageConfig.from_settings()
        if backend is None:
            backend_cls = _BACKENDS.get(self.config.backend.lower())
            if backend_cls is None:
                raise ValueError(f"Unsupported storage backend: {self.config.backend}")
            backend = backend_cls(self.config)
        self.backend = backend

    @classmethod
    def default(cls) -> "Storage":
        """Process-wide storage built from settings."""
        if cls._default is None:
            cls._default = cls()
        return cls._default

    def upload(self, file_path: str, key: str, content_type: str = DEFAULT_CONTENT_TYPE) -> StorageResult:
        return self.backend.upload(file_path, key, content_type)

    def upload_fileobj(self, fileobj: BinaryIO, key: str, content_type: str = DEFAULT_CONTENT_TYPE) -> StorageResult:
        return self.backend.upload_fileobj(fileobj, key, content_type)

    def get_url(self, key: str) -> str:
        return self.backend.get_url(key)


def get_storage() -> Storage:
    """Object storage for processed videos."""
    return Storage.default()


def get_asset_storage() -> Storage:
    """Storage for locally served assets (thumbnails) under ``/assets``."""
    return Storage(
        StorageConfig(
            backend="local",
            local_path=settings.ASSETS_ROOT,
            public_base_url=f"{settings.PUBLIC_BASE_URL.rstrip('/')}/assets",
        )
    )
