"""
Domain models for the video catalog.

These models represent the core business concepts. They have no dependencies
on external frameworks, databases, or APIs. Repositories translate them to
and from documents; the API layer translates them to JSON.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(Enum):
    """What a user is allowed to do. Only admins upload videos."""
    USER = "user"
    ADMIN = "admin"


class MediaKind(Enum):
    """
    What an uploaded object is.

    Videos go through the format allow-list; generic files (avatars)
    only have to respect the size ceiling.
    """
    VIDEO = "video"
    GENERIC = "generic"


@dataclass
class User:
    """
    A registered account.

    `password_hash` never leaves the server; API responses are built
    from the other fields only.
    """
    id: str
    username: str
    email: str
    password_hash: str
    role: Role = Role.USER
    bio: Optional[str] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ProfileChanges:
    """
    A partial profile update.

    None means "keep the current value". The password here is already
    hashed; plaintext never reaches the repository.
    """
    username: Optional[str] = None
    email: Optional[str] = None
    password_hash: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass
class Video:
    """
    A published video.

    The URL always points at a completed storage write: records are
    only created from an UploadResult.
    """
    id: str
    title: str
    url: str
    hashtags: str = ""
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Comment:
    """A user's note on exactly one video."""
    id: str
    video_id: str
    user_id: str
    text: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class CommentView:
    """A comment joined with its author's display name."""
    comment: Comment
    author_name: str


@dataclass
class VideoWithComments:
    """Denormalized read model used by the feed and detail views."""
    video: Video
    comments: list[CommentView] = field(default_factory=list)


@dataclass(frozen=True)
class UploadResult:
    """
    Outcome of one successful storage write.

    Frozen because it is the single source for the catalog record that
    follows: nothing downstream re-derives the key or URL.
    """
    url: str
    key: str
    original_name: str
    size_bytes: int
    content_type: str
    uploaded_at: datetime


@dataclass(frozen=True)
class StoredObjectInfo:
    """Descriptive metadata read back from a stored object."""
    key: str
    original_name: Optional[str]
    content_type: Optional[str]
    upload_date: Optional[str]
    content_length: int
    last_modified: Optional[datetime]
