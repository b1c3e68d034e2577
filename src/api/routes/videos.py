"""
Video endpoints.

Upload flow (admin only):
1. Token is verified and the role checked
2. The declared file size is checked against the ceiling
3. The file is written to object storage (format re-checked there)
4. Only then is the video record created, from the storage result

Read flow: the feed lists every video with its comments; the detail
view fetches one video and its comments in a single aggregation.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, Query, Request, UploadFile, status
from pydantic import Field

from ..dependencies import (
    BearerToken,
    CurrentPrincipal,
    FeedServiceDep,
    StorageClientDep,
    UploadOrchestratorDep,
)
from ..schemas import CamelModel, FileDetails, MessageResponse, VideoResponse
from .auth import to_incoming_file

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VideoUploadResponse(CamelModel):
    """Response after publishing a video."""
    success: bool = True
    message: str = "Video uploaded successfully!"
    video: VideoResponse
    file_details: FileDetails


class ObjectMetadataResponse(CamelModel):
    """Metadata stored alongside an uploaded object."""
    key: str
    original_name: Optional[str] = None
    content_type: Optional[str] = None
    upload_date: Optional[str] = None
    content_length: int = Field(description="Object size in bytes")
    last_modified: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=VideoUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a video",
    description="Admin only. Multipart form with `video`, `title` and `hashtags`.",
    responses={
        400: {"model": MessageResponse, "description": "Missing file, too large, or wrong format"},
        401: {"model": MessageResponse},
        403: {"model": MessageResponse, "description": "Caller is not an admin"},
        503: {"model": MessageResponse, "description": "Object storage unavailable"},
    },
)
async def upload_video(
    token: BearerToken,
    orchestrator: UploadOrchestratorDep,
    video: Annotated[Optional[UploadFile], File(description="Video file (MP4, MPEG, MOV, AVI, WMV, WebM)")] = None,
    title: Annotated[str, Form()] = "",
    hashtags: Annotated[str, Form()] = "",
) -> VideoUploadResponse:
    incoming = to_incoming_file(video) if video is not None else None

    logger.info(
        "Video upload started",
        extra={
            "video_filename": incoming.filename if incoming else None,
            "content_type": incoming.content_type if incoming else None,
            "declared_size": incoming.declared_size if incoming else None,
        }
    )

    outcome = await orchestrator.upload_video(token, incoming, title=title, hashtags=hashtags)

    return VideoUploadResponse(
        video=VideoResponse(
            id=outcome.record.id,
            title=outcome.record.title,
            url=outcome.record.url,
            hashtags=outcome.record.hashtags,
            created_at=outcome.record.created_at,
        ),
        file_details=FileDetails.from_upload(outcome.upload),
    )


@router.get(
    "/",
    response_model=list[VideoResponse],
    summary="List videos with their comments",
)
def list_videos(feed: FeedServiceDep) -> list[VideoResponse]:
    return [VideoResponse.from_view(view) for view in feed.list_feed()]


@router.get(
    "/get",
    response_model=VideoResponse,
    summary="Get one video with its comments",
    responses={404: {"model": MessageResponse}},
)
def get_video(
    request: Request,
    feed: FeedServiceDep,
    video_id: Annotated[Optional[str], Query(alias="id", description="Video id")] = None,
) -> VideoResponse:
    # A missing id is an unknown video, not a malformed request
    view = feed.get_video_detail(video_id or "", base_url=str(request.base_url))
    return VideoResponse.from_view(view)


@router.get(
    "/metadata/{key:path}",
    response_model=ObjectMetadataResponse,
    summary="Read stored metadata for an uploaded object",
    responses={404: {"model": MessageResponse}},
)
async def get_object_metadata(
    key: str,
    principal: CurrentPrincipal,
    storage: StorageClientDep,
) -> ObjectMetadataResponse:
    info = await storage.get_metadata(key)
    return ObjectMetadataResponse(
        key=info.key,
        original_name=info.original_name,
        content_type=info.content_type,
        upload_date=info.upload_date,
        content_length=info.content_length,
        last_modified=info.last_modified,
    )
