"""
Comment endpoints.
"""

import logging

from fastapi import APIRouter, status
from pydantic import Field

from ...core.errors import ValidationError
from ...core.media.feed import ANONYMOUS
from ..dependencies import CommentRepositoryDep, CurrentPrincipal, UserRepositoryDep
from ..schemas import CamelModel, CommentResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class AddCommentRequest(CamelModel):
    video_id: str = Field(description="Video being commented on")
    comment: str = Field(max_length=5000)


@router.post(
    "/add",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a video",
    responses={
        400: {"model": MessageResponse, "description": "Empty comment"},
        404: {"model": MessageResponse, "description": "Unknown video"},
    },
)
def add_comment(
    request: AddCommentRequest,
    principal: CurrentPrincipal,
    comments: CommentRepositoryDep,
    users: UserRepositoryDep,
) -> CommentResponse:
    """
    Add a comment as the authenticated user.

    Whitespace-only text is refused here; the repository only checks
    that the video exists.
    """
    text = request.comment.strip()
    if not text:
        raise ValidationError("Comment cannot be empty")

    comment = comments.add_comment(request.video_id, principal.user_id, text)
    author = users.get_display_names([principal.user_id]).get(principal.user_id, ANONYMOUS)

    return CommentResponse(
        id=comment.id,
        video_id=comment.video_id,
        user_id=comment.user_id,
        comment=comment.text,
        username=author,
        created_at=comment.created_at,
    )
