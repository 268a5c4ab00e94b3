"""Firebase Storage uploads for course covers and lesson files.

Every upload goes through the same checks: size limit, declared type in
the allow-list, and magic bytes agreeing with the declared type. Objects
are made public and addressed by their storage.googleapis.com URL.
"""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple
from urllib.parse import quote

import structlog

from src.config.settings import Settings
from src.utils.magic_bytes import validate_content_type


if TYPE_CHECKING:
    from google.cloud.storage import Bucket


logger = structlog.get_logger(__name__)

MB = 1024 * 1024

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "application/pdf": ".pdf",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
    "video/x-msvideo": ".avi",
}


class StorageError(Exception):
    def __init__(self, message: str, code: str = "storage_error") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class StorageNotConfiguredError(StorageError):
    def __init__(self, message: str = "Firebase Storage is not configured") -> None:
        super().__init__(message, "storage_not_configured")


class StorageUploadError(StorageError):
    def __init__(self, message: str) -> None:
        super().__init__(message, "upload_error")


class StorageValidationError(StorageError):
    """Magic bytes disagree with the declared type."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "validation_error")


class FileTooLargeError(StorageError):
    def __init__(self, size: int, max_size: int) -> None:
        super().__init__(
            f"File size ({size / MB:.2f} MB) exceeds maximum allowed ({max_size / MB:.2f} MB)",
            "file_too_large",
        )


class InvalidContentTypeError(StorageError):
    def __init__(self, content_type: str, allowed: list[str]) -> None:
        super().__init__(
            f"Content type '{content_type}' is not allowed. Allowed: {', '.join(allowed)}",
            "invalid_content_type",
        )


class UploadPolicy(NamedTuple):
    max_bytes: int
    allowed_types: list[str]
    cache_control: str


class FirebaseStorageService:
    """Uploads to the configured bucket. The SDK is loaded on first upload."""

    ROOT_PREFIX = "coursehub"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._bucket: Bucket | None = None
        # Thumbnail paths carry a timestamp, so those objects never change
        self.thumbnail_policy = UploadPolicy(
            settings.upload_max_file_size_mb * MB,
            settings.upload_allowed_image_types,
            "public, max-age=31536000, immutable",
        )
        self.lesson_policy = UploadPolicy(
            settings.content_max_file_size_mb * MB,
            settings.content_allowed_types,
            "public, max-age=86400",
        )

    @property
    def is_configured(self) -> bool:
        return self.settings.firebase_configured

    @property
    def allowed_types(self) -> list[str]:
        return self.thumbnail_policy.allowed_types

    @property
    def content_allowed_types(self) -> list[str]:
        return self.lesson_policy.allowed_types

    def _credentials_path(self) -> Path:
        path = Path(self.settings.firebase_credentials_path or "")
        if not path.is_absolute():
            # Relative to the api/ directory
            path = Path(__file__).parents[2] / path
        if not path.is_file():
            raise StorageNotConfiguredError(f"Firebase credentials file not found: {path}")
        return path

    def _get_bucket(self) -> "Bucket":
        if self._bucket is not None:
            return self._bucket
        if not self.is_configured:
            raise StorageNotConfiguredError

        import firebase_admin  # noqa: PLC0415
        from firebase_admin import credentials, storage  # noqa: PLC0415

        try:
            try:
                app = firebase_admin.get_app()
            except ValueError:
                app = firebase_admin.initialize_app(
                    credentials.Certificate(str(self._credentials_path())),
                    {
                        "storageBucket": self.settings.firebase_storage_bucket,
                        "projectId": self.settings.firebase_project_id,
                    },
                )
                logger.info("firebase_initialized", bucket=self.settings.firebase_storage_bucket)
            self._bucket = storage.bucket(app=app)
        except StorageError:
            raise
        except Exception as e:
            logger.exception("firebase_init_failed", error=str(e))
            raise StorageNotConfiguredError(f"Failed to initialize Firebase: {e}") from e
        return self._bucket

    def public_url(self, storage_path: str) -> str:
        encoded = "/".join(quote(part, safe="") for part in storage_path.split("/"))
        return f"https://storage.googleapis.com/{self.settings.firebase_storage_bucket}/{encoded}"

    def _check(self, content: bytes, content_type: str, policy: UploadPolicy) -> str:
        """Returns the sniffed content type."""
        if len(content) > policy.max_bytes:
            raise FileTooLargeError(len(content), policy.max_bytes)
        if content_type not in policy.allowed_types:
            raise InvalidContentTypeError(content_type, policy.allowed_types)

        ok, detected, error = validate_content_type(
            content[:64], content_type, allowed_types=frozenset(policy.allowed_types)
        )
        if not ok:
            logger.warning(
                "magic_bytes_mismatch",
                declared_type=content_type,
                detected_type=detected,
                error=error,
            )
            raise StorageValidationError(error or "Invalid file content")
        return detected or content_type

    def _write_blob(self, storage_path: str, content: bytes, content_type: str, cache: str) -> None:
        blob = self._get_bucket().blob(storage_path)
        blob.cache_control = cache
        blob.upload_from_string(content, content_type=content_type)
        blob.make_public()

    async def _upload(
        self,
        content: bytes,
        content_type: str,
        policy: UploadPolicy,
        stem: str,
        filename: str | None,
    ) -> dict[str, Any]:
        if not self.is_configured:
            raise StorageNotConfiguredError
        actual_type = self._check(content, content_type, policy)

        extension = EXTENSIONS.get(actual_type) or Path(filename or "").suffix.lower()
        storage_path = f"{self.ROOT_PREFIX}/{stem}{extension}"
        try:
            # The Firebase SDK is blocking; keep it off the event loop
            await asyncio.to_thread(
                self._write_blob, storage_path, content, actual_type, policy.cache_control
            )
        except StorageError:
            raise
        except Exception as e:
            logger.exception("upload_failed", storage_path=storage_path, error=str(e))
            raise StorageUploadError(f"Failed to upload file: {e}") from e

        logger.info(
            "file_uploaded",
            storage_path=storage_path,
            content_type=actual_type,
            file_size=len(content),
        )
        return {
            "file_url": self.public_url(storage_path),
            "storage_path": storage_path,
            "content_type": actual_type,
            "file_size": len(content),
            "filename": filename or Path(storage_path).name,
            "uploaded_at": datetime.now(UTC),
        }

    async def upload_thumbnail(
        self,
        content: bytes,
        content_type: str,
        entity_type: str,
        entity_id: str,
        filename: str | None = None,
    ) -> dict[str, Any]:
        """Upload a cover or avatar image.

        Raises:
            StorageError: One of its subclasses; ``code`` tells which check failed.
        """
        stamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
        return await self._upload(
            content,
            content_type,
            self.thumbnail_policy,
            f"thumbnails/{entity_type}/{entity_id}_{stamp}",
            filename,
        )

    async def upload_content_file(
        self,
        content: bytes,
        content_type: str,
        course_id: str,
        content_id: str,
        filename: str | None = None,
    ) -> dict[str, Any]:
        """Upload a lesson video or PDF under the course's folder."""
        return await self._upload(
            content,
            content_type,
            self.lesson_policy,
            f"contents/{course_id}/{content_id}",
            filename,
        )
