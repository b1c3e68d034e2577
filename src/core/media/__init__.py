"""
Video catalog logic.

Contains the domain models, the upload policy and the feed/detail query
service. The upload orchestrator lives in `uploads` and is imported from
there directly, since it depends on the auth package which in turn uses
these models.
"""

from .feed import ANONYMOUS, FeedService, normalize_media_url
from .models import (
    Comment,
    CommentView,
    MediaKind,
    ProfileChanges,
    Role,
    StoredObjectInfo,
    UploadResult,
    User,
    Video,
    VideoWithComments,
)
from .policy import ALLOWED_VIDEO_TYPES, UploadPolicy, build_storage_key

__all__ = [
    "ALLOWED_VIDEO_TYPES",
    "ANONYMOUS",
    "Comment",
    "CommentView",
    "FeedService",
    "MediaKind",
    "ProfileChanges",
    "Role",
    "StoredObjectInfo",
    "UploadPolicy",
    "UploadResult",
    "User",
    "Video",
    "VideoWithComments",
    "build_storage_key",
    "normalize_media_url",
]
