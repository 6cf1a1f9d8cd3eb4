"""Tests for the media storage service."""

from unittest.mock import MagicMock, patch

import pytest

from learninghub.config.settings import Settings
from learninghub.storage.service import (
    FileTooLargeError,
    InvalidContentTypeError,
    MediaStorageService,
    StorageNotConfiguredError,
    StorageUploadError,
    StorageValidationError,
)


PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
MP4 = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 32


@pytest.fixture
def settings() -> Settings:
    return Settings(
        firebase_enabled=True,
        firebase_credentials_path="/fake/firebase.json",
        firebase_storage_bucket="media-bucket",
        upload_max_image_size_mb=1,
    )


@pytest.fixture
def bucket() -> MagicMock:
    return MagicMock()


@pytest.fixture
def storage(settings, bucket) -> MediaStorageService:
    service = MediaStorageService(settings)
    patcher = patch.object(service, "_get_bucket", return_value=bucket)
    patcher.start()
    yield service
    patcher.stop()


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_image(self, storage, bucket) -> None:
        media = await storage.upload_image(PNG, "cover.png", "image/png")

        assert media.id.startswith("learninghub/thumbnails/")
        assert media.id.endswith(".png")
        assert media.url.startswith("https://storage.googleapis.com/media-bucket/")
        blob = bucket.blob.return_value
        blob.upload_from_string.assert_called_once_with(PNG, content_type="image/png")
        blob.make_public.assert_called_once()

    @pytest.mark.asyncio
    async def test_upload_video_keeps_duration(self, storage) -> None:
        media = await storage.upload_video(MP4, "intro.mp4", "video/mp4", duration_seconds=95)

        assert media.id.startswith("learninghub/videos/")
        assert media.duration_seconds == 95

    @pytest.mark.asyncio
    async def test_too_large(self, storage) -> None:
        with pytest.raises(FileTooLargeError):
            await storage.upload_image(PNG + b"\x00" * (1024 * 1024), "big.png", "image/png")

    @pytest.mark.asyncio
    async def test_type_not_allowed(self, storage) -> None:
        with pytest.raises(InvalidContentTypeError):
            await storage.upload_image(PNG, "cover.gif", "image/gif")

    @pytest.mark.asyncio
    async def test_content_mismatch(self, storage, bucket) -> None:
        with pytest.raises(StorageValidationError):
            await storage.upload_image(MP4, "cover.png", "image/png")
        bucket.blob.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_failure(self, storage, bucket) -> None:
        bucket.blob.return_value.upload_from_string.side_effect = RuntimeError("503")

        with pytest.raises(StorageUploadError):
            await storage.upload_image(PNG, "cover.png", "image/png")


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_existing(self, storage, bucket) -> None:
        bucket.blob.return_value.exists.return_value = True

        assert await storage.delete("learninghub/videos/abc.mp4") is True
        bucket.blob.return_value.delete.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_missing(self, storage, bucket) -> None:
        bucket.blob.return_value.exists.return_value = False

        assert await storage.delete("learninghub/videos/gone.mp4") is False
        bucket.blob.return_value.delete.assert_not_called()


@pytest.mark.asyncio
async def test_not_configured() -> None:
    service = MediaStorageService(Settings(firebase_enabled=False))

    with pytest.raises(StorageNotConfiguredError):
        await service.upload_image(PNG, "cover.png", "image/png")
