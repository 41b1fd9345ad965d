"""Tests for transient file staging and cleanup."""

import io
import logging
import os

import pytest
from starlette.datastructures import Headers, UploadFile

from tubely.modules.media.staging import (
    TransientFiles,
    discard_file,
    stage_upload,
    staged_filename,
)


class TestTransientFiles:
    """Tests for scoped removal of working files."""

    def test_staged_filename_derives_from_video_id(self) -> None:
        assert staged_filename("0b6f7d52-8c1e-4f8e-9a57-1f2a3b4c5d6e") == (
            "0b6f7d52-8c1e-4f8e-9a57-1f2a3b4c5d6e.mp4"
        )

    def test_files_removed_on_normal_exit(self, tmp_path) -> None:
        with TransientFiles(str(tmp_path / "work")) as transient:
            staged = transient.claim("a.mp4")
            processed = transient.track(staged + ".processed")
            open(staged, "wb").close()
            open(processed, "wb").close()

        assert not os.path.exists(staged)
        assert not os.path.exists(processed)

    def test_files_removed_when_block_raises(self, tmp_path) -> None:
        with pytest.raises(RuntimeError):
            with TransientFiles(str(tmp_path)) as transient:
                staged = transient.claim("a.mp4")
                open(staged, "wb").close()
                raise RuntimeError("boom")

        assert not os.path.exists(staged)

    def test_never_created_path_is_ignored(self, tmp_path) -> None:
        with TransientFiles(str(tmp_path)) as transient:
            transient.claim("never-written.mp4")

        assert list(tmp_path.iterdir()) == []

    def test_claim_creates_directory(self, tmp_path) -> None:
        directory = tmp_path / "nested" / "staging"
        with TransientFiles(str(directory)) as transient:
            path = transient.claim("x.mp4")
            assert directory.is_dir()
            assert path == str(directory / "x.mp4")
            assert transient.paths == [path]


class TestDiscardFile:
    """Tests for discard_file."""

    def test_missing_file_is_silent(self, tmp_path, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            discard_file(str(tmp_path / "absent.mp4"))
        assert caplog.records == []

    def test_removal_error_is_logged_not_raised(self, tmp_path, caplog) -> None:
        directory = tmp_path / "not-a-file"
        directory.mkdir()

        with caplog.at_level(logging.WARNING, logger="tubely.modules.media.staging"):
            discard_file(str(directory))

        assert any("Could not remove transient file" in r.getMessage() for r in caplog.records)


class TestStageUpload:
    """Tests for stage_upload."""

    @pytest.mark.asyncio
    async def test_copies_bytes_and_overwrites_stale_file(self, tmp_path) -> None:
        destination = tmp_path / "v.mp4"
        destination.write_bytes(b"stale content that is longer than the upload")

        data = os.urandom(3 * 1024 * 1024 + 17)
        upload = UploadFile(
            file=io.BytesIO(data),
            size=len(data),
            filename="v.mp4",
            headers=Headers({"content-type": "video/mp4"}),
        )
        await upload.read(10)

        written = await stage_upload(upload, str(destination))

        assert written == len(data)
        assert destination.read_bytes() == data
