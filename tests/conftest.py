"""Shared fixtures.

Environment is configured before ``tubely`` is imported so ``Settings`` picks
up test values.
"""

import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Optional

_ASSETS_ROOT = tempfile.mkdtemp(prefix="tubely-assets-")

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-tubely")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("STORAGE_BUCKET", "tubely-test")
os.environ.setdefault("STORAGE_REGION", "us-east-2")
os.environ.setdefault("ASSETS_ROOT", _ASSETS_ROOT)
os.environ.setdefault("LOG_JSON", "false")

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tubely.core.database import Base, get_db
from tubely.core.storage import Storage, StorageBackend, StorageConfig, StorageResult
from tubely.modules.auth.jwt import create_access_token
from tubely.modules.media.errors import ProbeFailure, RemuxFailure
from tubely.modules.media.pipeline import VideoUploadPipeline
from tubely.modules.media.probe import AspectClassification
from tubely.modules.media.remux import remuxed_path_for
from tubely.modules.media.uploader import StorageUploader
from tubely.modules.video.service import VideoService


class FakeProber:
    """Stands in for ffprobe; records every path it was asked about."""

    def __init__(self, classification=AspectClassification.LANDSCAPE, error: Optional[Exception] = None):
        self.classification = classification
        self.error = error
        self.calls: list[str] = []
        self.seen_bytes: list[bytes] = []

    async def classify(self, file_path: str) -> AspectClassification:
        self.calls.append(file_path)
        self.seen_bytes.append(Path(file_path).read_bytes())
        if self.error is not None:
            raise self.error
        return self.classification


class FakeRemuxer:
    """Stands in for ffmpeg; copies the input to the ``.processed`` path."""

    def __init__(self, error: Optional[Exception] = None, leave_partial_output: bool = False):
        self.error = error
        self.leave_partial_output = leave_partial_output
        self.calls: list[str] = []

    async def remux(self, input_path: str) -> str:
        self.calls.append(input_path)
        output_path = remuxed_path_for(input_path)
        if self.leave_partial_output:
            Path(output_path).write_bytes(b"partial")
        if self.error is not None:
            raise self.error
        shutil.copyfile(input_path, output_path)
        return output_path


class FailingBackend(StorageBackend):
    """Object store that rejects every write."""

    def __init__(self):
        self.calls: list[str] = []

    def upload(self, file_path, key, content_type="application/octet-stream"):
        self.calls.append(key)
        return StorageResult(success=False, key=key, url="", error_message="AccessDenied")

    def upload_fileobj(self, fileobj, key, content_type="application/octet-stream"):
        self.calls.append(key)
        return StorageResult(success=False, key=key, url="", error_message="AccessDenied")

    def get_url(self, key):
        return ""


class MediaStack:
    """The swappable collaborators of one test's upload pipeline."""

    def __init__(self, root: Path):
        self.staging_dir = root / "staging"
        self.bucket_dir = root / "bucket"
        self.assets_dir = root / "assets"
        self.prober = FakeProber()
        self.remuxer = FakeRemuxer()
        self.storage = Storage(StorageConfig(backend="local", local_path=str(self.bucket_dir)))
        self.asset_storage = Storage(
            StorageConfig(
                backend="local",
                local_path=str(self.assets_dir),
                public_base_url="http://localhost:8091/assets",
            )
        )
        self.max_upload_bytes = 1 << 30
        self.max_thumbnail_bytes = 10 << 20

    def pipeline(self, session: AsyncSession) -> VideoUploadPipeline:
        return VideoUploadPipeline(
            session,
            prober=self.prober,
            remuxer=self.remuxer,
            uploader=StorageUploader(self.storage),
            staging_dir=str(self.staging_dir),
            bucket="tubely-test",
            region="us-east-2",
            max_upload_bytes=self.max_upload_bytes,
        )

    def staged_files(self) -> list[str]:
        if not self.staging_dir.exists():
            return []
        return sorted(p.name for p in self.staging_dir.iterdir())

    def fail_probe(self):
        self.prober.error = ProbeFailure("ffprobe failed with exit code 1: moov atom not found", exit_code=1)

    def fail_remux(self):
        self.remuxer = FakeRemuxer(
            error=RemuxFailure("ffmpeg failed with exit code 1", exit_code=1),
            leave_partial_output=True,
        )

    def fail_storage(self) -> FailingBackend:
        backend = FailingBackend()
        self.storage = Storage(StorageConfig(backend="s3"), backend=backend)
        return backend

    def fail_asset_storage(self) -> FailingBackend:
        backend = FailingBackend()
        self.asset_storage = Storage(StorageConfig(backend="local", local_path=str(self.assets_dir)), backend=backend)
        return backend


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    """Session factory over a throwaway SQLite database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tubely.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def media(tmp_path) -> MediaStack:
    return MediaStack(tmp_path)


@pytest_asyncio.fixture
async def client(session_maker, media):
    """HTTP client against the app with database and media collaborators swapped out."""
    from tubely.main import app
    from tubely.modules.video.router import get_video_service

    async def override_get_db():
        async with session_maker() as session:
            yield session

    def override_get_video_service(db: AsyncSession = Depends(get_db)) -> VideoService:
        return VideoService(
            db,
            pipeline=media.pipeline(db),
            asset_storage=media.asset_storage,
            max_thumbnail_bytes=media.max_thumbnail_bytes,
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_video_service] = override_get_video_service

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def other_auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(uuid.uuid4())}"}
