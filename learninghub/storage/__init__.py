"""Media store for course thumbnails and lesson videos (Firebase Storage)."""

from learninghub.storage.service import (
    FileTooLargeError,
    InvalidContentTypeError,
    MediaStorageService,
    StorageError,
    StorageNotConfiguredError,
    StorageUploadError,
    StorageValidationError,
    UploadedMedia,
)


__all__ = [
    "FileTooLargeError",
    "InvalidContentTypeError",
    "MediaStorageService",
    "StorageError",
    "StorageNotConfiguredError",
    "StorageUploadError",
    "StorageValidationError",
    "UploadedMedia",
]
