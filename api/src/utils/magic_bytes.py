"""File type sniffing for uploads.

The declared Content-Type of an upload is only trusted when the first
bytes of the file agree with it, so a renamed executable cannot pass
as a course cover or a lesson video.
"""

# (offset, prefix, mime type). ISO media brands are checked before the
# generic ``ftyp`` box so QuickTime is not reported as MP4.
SIGNATURES: tuple[tuple[int, bytes, str], ...] = (
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"%PDF", "application/pdf"),
    (0, b"\x1aE\xdf\xa3", "video/webm"),
    (4, b"ftypqt", "video/quicktime"),
    (4, b"ftyp", "video/mp4"),
)

# RIFF containers name their payload at bytes 8..12
RIFF_PAYLOADS = {b"WEBP": "image/webp", b"AVI ": "video/x-msvideo"}

LESSON_KINDS = {
    "video/mp4": "video",
    "video/webm": "video",
    "video/quicktime": "video",
    "video/x-msvideo": "video",
    "application/pdf": "document",
}


def detect_content_type(head: bytes) -> str | None:
    """MIME type implied by the leading bytes, or None when unrecognised."""
    if len(head) < 4:
        return None
    if head.startswith(b"RIFF"):
        return RIFF_PAYLOADS.get(head[8:12])
    for offset, prefix, mime in SIGNATURES:
        if head[offset : offset + len(prefix)] == prefix:
            return mime
    return None


def _media_class(mime: str) -> str:
    return mime.split("/", 1)[0]


def validate_content_type(
    head: bytes,
    declared_type: str | None,
    *,
    strict: bool = False,
    allowed_types: frozenset[str] | None = None,
) -> tuple[bool, str | None, str | None]:
    """Compare sniffed bytes with the declared type.

    Without ``strict`` an image declared as PNG but sniffed as JPEG is
    accepted (same media class); a PDF declared as video is not.

    Returns:
        (ok, detected_type, error_message)
    """
    detected = detect_content_type(head)
    if detected is None:
        return False, None, "Unable to detect file type from content"

    if allowed_types is not None and detected not in allowed_types:
        allowed = ", ".join(sorted(allowed_types))
        return False, detected, f"File type '{detected}' is not allowed. Allowed: {allowed}"

    if not declared_type:
        return True, detected, None

    declared = declared_type.split(";", 1)[0].strip().lower()
    if strict and declared != detected:
        return (
            False,
            detected,
            f"Content-Type mismatch: declared '{declared}', detected '{detected}'",
        )
    if _media_class(declared) != _media_class(detected):
        return (
            False,
            detected,
            f"Media class mismatch: declared '{_media_class(declared)}', "
            f"detected '{_media_class(detected)}'",
        )
    return True, detected, None


def lesson_kind(mime_type: str | None) -> str | None:
    """Content kind for a lesson file type: video, document or None."""
    return LESSON_KINDS.get(mime_type or "")
