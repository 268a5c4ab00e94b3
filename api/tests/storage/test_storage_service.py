"""Tests for Firebase upload checks (SDK calls mocked)."""

from unittest.mock import Mock, patch

import pytest

from src.config.settings import Settings
from src.storage.service import (
    FileTooLargeError,
    FirebaseStorageService,
    InvalidContentTypeError,
    StorageNotConfiguredError,
    StorageUploadError,
    StorageValidationError,
)


PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PDF = b"%PDF-1.7\n" + b"\x00" * 32


@pytest.fixture
def service() -> FirebaseStorageService:
    settings = Settings(
        firebase_enabled=True,
        firebase_credentials_path="credentials.json",
        firebase_storage_bucket="coursehub.appspot.com",
        upload_max_file_size_mb=1,
    )
    return FirebaseStorageService(settings)


class TestUploadThumbnail:
    """Tests for thumbnail uploads."""

    @pytest.mark.asyncio
    async def test_uploads_public_object(self, service):
        """The object lands under thumbnails with a public URL."""
        with patch.object(service, "_write_blob") as write:
            result = await service.upload_thumbnail(
                PNG, "image/png", "courses", "abc", "capa.png"
            )

        path = write.call_args.args[0]
        assert path.startswith("coursehub/thumbnails/courses/abc_")
        assert path.endswith(".png")
        assert write.call_args.args[2] == "image/png"
        assert result["file_url"] == (
            f"https://storage.googleapis.com/coursehub.appspot.com/{path}"
        )
        assert result["file_size"] == len(PNG)
        assert result["filename"] == "capa.png"

    @pytest.mark.asyncio
    async def test_rejects_oversized(self, service):
        """Files above the size limit are never written."""
        with patch.object(service, "_write_blob") as write:
            with pytest.raises(FileTooLargeError):
                await service.upload_thumbnail(
                    PNG + b"\x00" * (1024 * 1024), "image/png", "courses", "abc"
                )
        write.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_type_outside_allow_list(self, service):
        """Documents are not accepted as thumbnails."""
        with pytest.raises(InvalidContentTypeError) as exc:
            await service.upload_thumbnail(PDF, "application/pdf", "courses", "abc")
        assert exc.value.code == "invalid_content_type"

    @pytest.mark.asyncio
    async def test_rejects_mismatched_bytes(self, service):
        """A PDF renamed to .png does not pass as an image."""
        with pytest.raises(StorageValidationError):
            await service.upload_thumbnail(PDF, "image/png", "courses", "abc")

    @pytest.mark.asyncio
    async def test_sdk_failure_becomes_upload_error(self, service):
        """SDK errors surface as StorageUploadError."""
        with patch.object(service, "_write_blob", side_effect=RuntimeError("boom")):
            with pytest.raises(StorageUploadError):
                await service.upload_thumbnail(PNG, "image/png", "courses", "abc")


class TestUploadContentFile:
    """Tests for lesson file uploads."""

    @pytest.mark.asyncio
    async def test_path_is_under_course(self, service):
        """Lesson files are stored under their course."""
        with patch.object(service, "_write_blob") as write:
            result = await service.upload_content_file(
                PDF, "application/pdf", "course-1", "content-1", "aula.pdf"
            )

        assert result["storage_path"] == "coursehub/contents/course-1/content-1.pdf"
        assert write.call_args.args[3] == "public, max-age=86400"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        """Uploads fail when storage is disabled."""
        service = FirebaseStorageService(Settings(firebase_enabled=False))
        service._write_blob = Mock()

        with pytest.raises(StorageNotConfiguredError):
            await service.upload_content_file(PDF, "application/pdf", "c", "x")
        service._write_blob.assert_not_called()


def test_public_url_escapes_segments(service):
    """Path segments are URL-quoted."""
    url = service.public_url("coursehub/contents/c/aula 1.pdf")

    assert url.endswith("/coursehub/contents/c/aula%201.pdf")
