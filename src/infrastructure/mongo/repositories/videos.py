"""
MongoDB repository for videos.

Video documents are written once, from a completed upload, and never
edited. Reads come in two shapes: a plain list (the feed service joins
comments per video) and a single-video aggregation that pulls the
video's comments in with $lookup.
"""

import logging

from pymongo import ASCENDING

from src.core.errors import VideoNotFound
from src.core.media.models import Comment, Video, utcnow

from ..client import DocumentDatabase, parse_object_id
from .comments import COMMENTS_COLLECTION, CommentRepository

logger = logging.getLogger(__name__)

VIDEOS_COLLECTION = "videos"


class VideoRepository:
    """Repository for video records."""

    def __init__(self, database: DocumentDatabase) -> None:
        self._videos = database[VIDEOS_COLLECTION]

    def ensure_indexes(self) -> None:
        self._videos.create_index("createdAt")

    def create_video(self, title: str, hashtags: str, url: str) -> Video:
        """Insert a video. Titles are not unique."""
        document = {
            "title": title,
            "url": url,
            "hashtags": hashtags or "",
            "createdAt": utcnow(),
        }
        self._videos.insert_one(document)

        logger.info(
            "Created video record",
            extra={"video_id": str(document["_id"]), "url": url}
        )

        return self._to_video(document)

    def list_videos(self) -> list[Video]:
        """All videos, oldest first."""
        cursor = self._videos.find({}).sort("createdAt", ASCENDING)
        return [self._to_video(doc) for doc in cursor]

    def get_video_with_comments(self, video_id: str) -> tuple[Video, list[Comment]]:
        """
        Load one video and its comments in a single aggregation.

        Raises VideoNotFound for unknown or malformed ids.
        """
        object_id = parse_object_id(video_id)
        if object_id is None:
            raise VideoNotFound()

        pipeline = [
            {"$match": {"_id": object_id}},
            {
                "$lookup": {
                    "from": COMMENTS_COLLECTION,
                    "localField": "_id",
                    "foreignField": "videoId",
                    "as": "comments",
                }
            },
            {
                "$project": {
                    "title": 1,
                    "url": 1,
                    "hashtags": 1,
                    "createdAt": 1,
                    "comments": 1,
                }
            },
        ]

        results = list(self._videos.aggregate(pipeline))
        if not results:
            raise VideoNotFound()

        document = results[0]
        comments = [CommentRepository.to_comment(doc) for doc in document.get("comments", [])]
        comments.sort(key=lambda comment: comment.created_at)

        return self._to_video(document), comments

    @staticmethod
    def _to_video(document: dict) -> Video:
        return Video(
            id=str(document["_id"]),
            title=document.get("title", ""),
            url=document.get("url", ""),
            hashtags=document.get("hashtags") or "",
            created_at=document.get("createdAt") or utcnow(),
        )
