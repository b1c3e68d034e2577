"""
Read side of the catalog: the feed and the video detail view.

Both views return videos with their comments attached and each comment
carrying its author's display name. A comment whose author can't be
found is shown as "Anonymous" rather than failing the response.
"""

import logging
from typing import Iterable, Optional, Protocol
from urllib.parse import urljoin, urlsplit

from .models import Comment, CommentView, Video, VideoWithComments

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


class VideoReader(Protocol):
    def list_videos(self) -> list[Video]: ...
    def get_video_with_comments(self, video_id: str) -> tuple[Video, list[Comment]]: ...


class CommentReader(Protocol):
    def list_for_video(self, video_id: str) -> list[Comment]: ...


class AuthorDirectory(Protocol):
    def get_display_names(self, user_ids: Iterable[str]) -> dict[str, str]: ...


def normalize_media_url(url: str, base_url: Optional[str]) -> str:
    """Make a relative media URL absolute against the request's base URL."""
    if not url or not base_url or urlsplit(url).scheme:
        return url
    return urljoin(base_url, url)


class FeedService:
    """Builds the denormalized video views the client renders."""

    def __init__(
        self,
        videos: VideoReader,
        comments: CommentReader,
        authors: AuthorDirectory,
    ) -> None:
        self._videos = videos
        self._comments = comments
        self._authors = authors

    def list_feed(self) -> list[VideoWithComments]:
        """Every video, oldest first, each with its comments."""
        videos = self._videos.list_videos()
        comments_by_video = {video.id: self._comments.list_for_video(video.id) for video in videos}

        names = self._resolve_authors(
            comment for comments in comments_by_video.values() for comment in comments
        )

        return [
            VideoWithComments(
                video=video,
                comments=self._decorate(comments_by_video[video.id], names),
            )
            for video in videos
        ]

    def get_video_detail(self, video_id: str, base_url: Optional[str] = None) -> VideoWithComments:
        """
        One video with its comments.

        Raises VideoNotFound when the id doesn't resolve.
        """
        video, comments = self._videos.get_video_with_comments(video_id)
        video.url = normalize_media_url(video.url, base_url)

        names = self._resolve_authors(comments)
        return VideoWithComments(video=video, comments=self._decorate(comments, names))

    def _resolve_authors(self, comments: Iterable[Comment]) -> dict[str, str]:
        user_ids = {comment.user_id for comment in comments}
        if not user_ids:
            return {}
        try:
            return self._authors.get_display_names(user_ids)
        except Exception as e:
            logger.warning(
                "Author lookup failed; rendering comments as anonymous",
                extra={"error": str(e), "user_count": len(user_ids)}
            )
            return {}

    @staticmethod
    def _decorate(comments: list[Comment], names: dict[str, str]) -> list[CommentView]:
        return [
            CommentView(comment=comment, author_name=names.get(comment.user_id, ANONYMOUS))
            for comment in comments
        ]
