"""Firebase Storage media store for course thumbnails and lesson videos.

Uploads are validated (size, declared type, magic bytes) before they reach
the bucket. The returned ``id`` is the object path and is what ``delete``
expects back.
"""

import asyncio
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote

import structlog

from learninghub.config.settings import Settings
from learninghub.utils.magic_bytes import validate_content_type


if TYPE_CHECKING:
    from google.cloud.storage import Bucket


logger = structlog.get_logger(__name__)


class StorageError(Exception):
    """Base error for media store operations."""

    def __init__(self, message: str, code: str = "storage_error") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class StorageNotConfiguredError(StorageError):
    def __init__(self, message: str = "Firebase Storage is not configured") -> None:
        super().__init__(message, "storage_not_configured")


class StorageUploadError(StorageError):
    def __init__(self, message: str) -> None:
        super().__init__(message, "upstream_failure")


class StorageValidationError(StorageError):
    def __init__(self, message: str) -> None:
        super().__init__(message, "validation_error")


class FileTooLargeError(StorageError):
    def __init__(self, size: int, max_size: int) -> None:
        message = (
            f"File size ({size / 1024 / 1024:.2f} MB) exceeds "
            f"maximum allowed ({max_size / 1024 / 1024:.2f} MB)"
        )
        super().__init__(message, "file_too_large")


class InvalidContentTypeError(StorageError):
    def __init__(self, content_type: str, allowed: list[str]) -> None:
        message = f"Content type '{content_type}' is not allowed. Allowed: {', '.join(allowed)}"
        super().__init__(message, "invalid_content_type")


@dataclass(frozen=True)
class UploadedMedia:
    url: str
    id: str
    duration_seconds: int | None = None


_firebase_app = None


def _init_bucket(settings: Settings) -> "Bucket":
    """Initialize the Firebase Admin SDK once and return the media bucket."""
    global _firebase_app  # noqa: PLW0603

    if not settings.firebase_configured:
        raise StorageNotConfiguredError

    import firebase_admin  # noqa: PLC0415
    from firebase_admin import credentials, storage  # noqa: PLC0415

    creds_path = settings.firebase_credentials_path
    if not creds_path or not Path(creds_path).exists():
        raise StorageNotConfiguredError(
            f"Firebase credentials file not found: {creds_path}"
        )

    if _firebase_app is None:
        cred = credentials.Certificate(creds_path)
        _firebase_app = firebase_admin.initialize_app(
            cred, {"storageBucket": settings.firebase_storage_bucket}
        )
        logger.info("firebase_initialized", bucket=settings.firebase_storage_bucket)

    return storage.bucket()


class MediaStorageService:
    """Uploads and deletes course media in Firebase Storage."""

    EXTENSION_MAP: dict[str, str] = {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/webp": ".webp",
        "image/gif": ".gif",
        "image/avif": ".avif",
        "video/mp4": ".mp4",
        "video/webm": ".webm",
        "video/quicktime": ".mov",
    }

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._bucket: Bucket | None = None

    @property
    def is_configured(self) -> bool:
        return self.settings.firebase_configured

    def _get_bucket(self) -> "Bucket":
        if self._bucket is None:
            self._bucket = _init_bucket(self.settings)
        return self._bucket

    def _build_storage_path(
        self, folder: str, content_type: str, filename: str | None
    ) -> str:
        """Format: learninghub/{folder}/{uuid}{ext}"""
        ext = self.EXTENSION_MAP.get(content_type, "")
        if not ext and filename:
            ext = Path(filename).suffix.lower()
        return f"learninghub/{folder}/{uuid.uuid4().hex}{ext}"

    def _public_url(self, storage_path: str) -> str:
        encoded = "/".join(quote(part, safe="") for part in storage_path.split("/"))
        return f"https://storage.googleapis.com/{self.settings.firebase_storage_bucket}/{encoded}"

    def _validate(
        self, content: bytes, content_type: str, allowed: list[str], max_mb: int
    ) -> str:
        """Check size and type; return the detected MIME type."""
        max_size = max_mb * 1024 * 1024
        if len(content) > max_size:
            raise FileTooLargeError(len(content), max_size)

        if content_type not in allowed:
            raise InvalidContentTypeError(content_type, allowed)

        is_valid, detected_type, error_msg = validate_content_type(
            content[:64], content_type, allowed_types=frozenset(allowed)
        )
        if not is_valid:
            logger.warning(
                "magic_bytes_validation_failed",
                declared_type=content_type,
                detected_type=detected_type,
                error=error_msg,
            )
            raise StorageValidationError(error_msg or "Invalid file content")
        return detected_type or content_type

    async def _put(
        self, folder: str, content: bytes, content_type: str, filename: str | None
    ) -> UploadedMedia:
        if not self.is_configured:
            raise StorageNotConfiguredError

        storage_path = self._build_storage_path(folder, content_type, filename)

        def upload() -> None:
            blob = self._get_bucket().blob(storage_path)
            blob.cache_control = "public, max-age=31536000, immutable"
            blob.upload_from_string(content, content_type=content_type)
            blob.make_public()

        try:
            await asyncio.to_thread(upload)
        except StorageError:
            raise
        except Exception as e:
            logger.exception("media_upload_failed", storage_path=storage_path)
            raise StorageUploadError(f"Failed to upload file: {e}") from e

        logger.info(
            "media_uploaded",
            storage_path=storage_path,
            content_type=content_type,
            file_size=len(content),
        )
        return UploadedMedia(url=self._public_url(storage_path), id=storage_path)

    async def upload_image(
        self, content: bytes, filename: str | None, content_type: str
    ) -> UploadedMedia:
        actual_type = self._validate(
            content,
            content_type,
            self.settings.upload_allowed_image_types,
            self.settings.upload_max_image_size_mb,
        )
        return await self._put("thumbnails", content, actual_type, filename)

    async def upload_video(
        self,
        content: bytes,
        filename: str | None,
        content_type: str,
        duration_seconds: int | None = None,
    ) -> UploadedMedia:
        """Upload a lesson video.

        The duration is supplied by the caller; the media store does not
        probe the file.
        """
        actual_type = self._validate(
            content,
            content_type,
            self.settings.upload_allowed_video_types,
            self.settings.upload_max_video_size_mb,
        )
        media = await self._put("videos", content, actual_type, filename)
        return UploadedMedia(
            url=media.url, id=media.id, duration_seconds=duration_seconds
        )

    async def delete(self, media_id: str) -> bool:
        """Delete a stored object. Returns False if it did not exist."""
        if not self.is_configured:
            raise StorageNotConfiguredError

        def remove() -> bool:
            blob = self._get_bucket().blob(media_id)
            if not blob.exists():
                return False
            blob.delete()
            return True

        try:
            deleted = await asyncio.to_thread(remove)
        except StorageError:
            raise
        except Exception as e:
            logger.exception("media_delete_failed", storage_path=media_id)
            raise StorageUploadError(f"Failed to delete file: {e}") from e

        if deleted:
            logger.info("media_deleted", storage_path=media_id)
        else:
            logger.warning("media_delete_not_found", storage_path=media_id)
        return deleted
