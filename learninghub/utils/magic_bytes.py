"""Magic bytes detection for uploaded course media.

Checks that the bytes of an upload match its declared Content-Type so a
renamed executable cannot be stored as a thumbnail or lesson video.
"""

from typing import NamedTuple


MIN_BYTES_FOR_DETECTION = 4
RIFF_HEADER_LENGTH = 12


class MagicSignature(NamedTuple):
    bytes_pattern: bytes
    mime_type: str
    offset: int = 0


# Reference: https://en.wikipedia.org/wiki/List_of_file_signatures
MAGIC_SIGNATURES: list[MagicSignature] = [
    MagicSignature(b"\xff\xd8\xff", "image/jpeg"),
    MagicSignature(b"\x89PNG\r\n\x1a\n", "image/png"),
    MagicSignature(b"GIF87a", "image/gif"),
    MagicSignature(b"GIF89a", "image/gif"),
    # ISO base media: box size, then "ftyp" and the major brand
    MagicSignature(b"ftypqt  ", "video/quicktime", offset=4),
    MagicSignature(b"ftypavif", "image/avif", offset=4),
    MagicSignature(b"ftyp", "video/mp4", offset=4),
    # Matroska / WebM EBML header
    MagicSignature(b"\x1a\x45\xdf\xa3", "video/webm"),
]

IMAGE_MIME_TYPES = frozenset(
    {"image/jpeg", "image/png", "image/gif", "image/webp", "image/avif"}
)
VIDEO_MIME_TYPES = frozenset({"video/mp4", "video/webm", "video/quicktime"})


def detect_content_type(data: bytes) -> str | None:
    """Detect the MIME type of ``data`` from its leading bytes."""
    if len(data) < MIN_BYTES_FOR_DETECTION:
        return None

    if data[:4] == b"RIFF" and len(data) >= RIFF_HEADER_LENGTH:
        return {b"WEBP": "image/webp", b"AVI ": "video/x-msvideo"}.get(data[8:12])

    for sig in MAGIC_SIGNATURES:
        end = sig.offset + len(sig.bytes_pattern)
        if len(data) >= end and data[sig.offset : end] == sig.bytes_pattern:
            return sig.mime_type

    return None


def validate_content_type(
    data: bytes,
    declared_type: str | None,
    *,
    allowed_types: frozenset[str] | None = None,
) -> tuple[bool, str | None, str | None]:
    """Validate file content against its declared Content-Type.

    The declared and detected types only need to share a media class
    (``image`` or ``video``); the detected type must be in ``allowed_types``.

    Returns:
        Tuple of (is_valid, detected_type, error_message).
    """
    detected_type = detect_content_type(data)
    if detected_type is None:
        return (False, None, "Unable to detect file type from content")

    if allowed_types is not None and detected_type not in allowed_types:
        return (
            False,
            detected_type,
            f"File type '{detected_type}' is not allowed. "
            f"Allowed: {', '.join(sorted(allowed_types))}",
        )

    if not declared_type:
        return (True, detected_type, None)

    declared_class = declared_type.split(";")[0].strip().lower().split("/")[0]
    detected_class = detected_type.split("/")[0]
    if detected_class != declared_class:
        return (
            False,
            detected_type,
            f"Media class mismatch: declared '{declared_class}', "
            f"detected '{detected_class}'",
        )

    return (True, detected_type, None)


def is_valid_image(data: bytes) -> bool:
    return detect_content_type(data) in IMAGE_MIME_TYPES


def is_valid_video(data: bytes) -> bool:
    return detect_content_type(data) in VIDEO_MIME_TYPES
