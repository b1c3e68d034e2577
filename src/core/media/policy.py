"""
Upload policy: what may be written to object storage, and under which key.

The policy is checked twice: once by the upload orchestrator against the
size the client declared (so oversized files are refused before any bytes
are read), and again by the storage client against the real payload,
which is the authoritative check.
"""

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from uuid import uuid4

from ..errors import PayloadTooLarge, UnsupportedFormat
from .models import MediaKind

DEFAULT_MAX_BYTES = 500 * 1024 * 1024

ALLOWED_VIDEO_TYPES = frozenset({
    "video/mp4",
    "video/mpeg",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-ms-wmv",
    "video/webm",
})

KEY_PREFIXES = {
    MediaKind.VIDEO: "videos",
    MediaKind.GENERIC: "files",
}

_EXTENSION_PATTERN = re.compile(r"^\.[a-z0-9]{1,10}$")


def _format_limit(max_bytes: int) -> str:
    megabytes = max_bytes / (1024 * 1024)
    if megabytes >= 1 and megabytes == int(megabytes):
        return f"{int(megabytes)}MB"
    return f"{max_bytes} bytes"


@dataclass(frozen=True)
class UploadPolicy:
    """Size ceilings per media kind plus the video format allow-list."""
    max_video_bytes: int = DEFAULT_MAX_BYTES
    max_file_bytes: int = DEFAULT_MAX_BYTES
    allowed_video_types: frozenset[str] = field(default=ALLOWED_VIDEO_TYPES)

    def max_bytes_for(self, kind: MediaKind) -> int:
        if kind == MediaKind.VIDEO:
            return self.max_video_bytes
        return self.max_file_bytes

    def check_size(self, size_bytes: int, kind: MediaKind) -> None:
        limit = self.max_bytes_for(kind)
        if size_bytes > limit:
            raise PayloadTooLarge(f"File size exceeds limit ({_format_limit(limit)})")

    def check_format(self, content_type: str | None, kind: MediaKind) -> None:
        if kind != MediaKind.VIDEO:
            return
        if (content_type or "").lower() not in self.allowed_video_types:
            raise UnsupportedFormat()

    def enforce(self, size_bytes: int, content_type: str | None, kind: MediaKind) -> None:
        """Raise if the upload may not be written. Size is checked first."""
        self.check_size(size_bytes, kind)
        self.check_format(content_type, kind)


def build_storage_key(kind: MediaKind, filename: str) -> str:
    """
    Generate a unique object key.

    Keys are random, not derived from the filename, so two uploads of
    the same file never collide. Only a sanitized extension is kept so
    the key still hints at the format.

    Example: videos/3f2a9c0e4b1d4f7e9a6b5c4d3e2f1a0b.mp4
    """
    suffix = PurePosixPath(filename or "").suffix.lower()
    extension = suffix if _EXTENSION_PATTERN.match(suffix) else ""
    return f"{KEY_PREFIXES[kind]}/{uuid4().hex}{extension}"
