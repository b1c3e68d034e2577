"""
MongoDB repository for comments.

Comment text is validated by the caller; the repository only checks that
the referenced video exists.
"""

import logging

from pymongo import ASCENDING

from src.core.errors import VideoNotFound
from src.core.media.models import Comment, utcnow

from ..client import DocumentDatabase, parse_object_id

logger = logging.getLogger(__name__)

COMMENTS_COLLECTION = "comments"


class CommentRepository:
    """Repository for comment records."""

    def __init__(self, database: DocumentDatabase) -> None:
        self._comments = database[COMMENTS_COLLECTION]
        self._videos = database["videos"]

    def ensure_indexes(self) -> None:
        self._comments.create_index("videoId")

    def add_comment(self, video_id: str, user_id: str, text: str) -> Comment:
        video_oid = parse_object_id(video_id)
        if video_oid is None or self._videos.find_one({"_id": video_oid}, {"_id": 1}) is None:
            raise VideoNotFound()

        document = {
            "videoId": video_oid,
            "userId": parse_object_id(user_id) or user_id,
            "comment": text,
            "createdAt": utcnow(),
        }
        self._comments.insert_one(document)

        logger.info(
            "Added comment",
            extra={"comment_id": str(document["_id"]), "video_id": video_id, "user_id": user_id}
        )

        return self.to_comment(document)

    def list_for_video(self, video_id: str) -> list[Comment]:
        video_oid = parse_object_id(video_id)
        if video_oid is None:
            return []
        cursor = self._comments.find({"videoId": video_oid}).sort("createdAt", ASCENDING)
        return [self.to_comment(doc) for doc in cursor]

    @staticmethod
    def to_comment(document: dict) -> Comment:
        return Comment(
            id=str(document["_id"]),
            video_id=str(document.get("videoId")),
            user_id=str(document.get("userId")),
            text=document.get("comment", ""),
            created_at=document.get("createdAt") or utcnow(),
        )
