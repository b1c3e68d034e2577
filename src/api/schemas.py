"""
Response models shared by several routers.

The web client speaks camelCase (`videoId`, `fileDetails`, ...), so every
model aliases its fields. Route-specific request models live next to
their routes.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.media.models import CommentView, UploadResult, User, VideoWithComments


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserResponse(CamelModel):
    """A user as the client sees it. Never includes the password hash."""
    id: str
    username: str
    email: str
    role: str
    bio: Optional[str] = None
    location: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role.value,
            bio=user.bio,
            location=user.location,
            avatar_url=user.avatar_url,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class CommentResponse(CamelModel):
    id: str
    video_id: str
    user_id: str
    comment: str
    username: str = Field(description="Author display name, 'Anonymous' when unknown")
    created_at: datetime

    @classmethod
    def from_view(cls, view: CommentView) -> "CommentResponse":
        return cls(
            id=view.comment.id,
            video_id=view.comment.video_id,
            user_id=view.comment.user_id,
            comment=view.comment.text,
            username=view.author_name,
            created_at=view.comment.created_at,
        )


class VideoResponse(CamelModel):
    id: str
    title: str
    url: str
    hashtags: str = ""
    created_at: datetime
    comments: list[CommentResponse] = Field(default_factory=list)

    @classmethod
    def from_view(cls, view: VideoWithComments) -> "VideoResponse":
        return cls(
            id=view.video.id,
            title=view.video.title,
            url=view.video.url,
            hashtags=view.video.hashtags,
            created_at=view.video.created_at,
            comments=[CommentResponse.from_view(c) for c in view.comments],
        )


class FileDetails(CamelModel):
    """Where an upload landed and what it was."""
    url: str
    blob_name: str
    original_name: str
    size: int
    content_type: str
    upload_date: datetime

    @classmethod
    def from_upload(cls, result: UploadResult) -> "FileDetails":
        return cls(
            url=result.url,
            blob_name=result.key,
            original_name=result.original_name,
            size=result.size_bytes,
            content_type=result.content_type,
            upload_date=result.uploaded_at,
        )


class MessageResponse(BaseModel):
    """Error body returned by every failure path."""
    message: str
