"""
Repository pattern implementations for MongoDB.

Repositories translate between domain models and documents.
"""

from .comments import CommentRepository
from .users import UserRepository
from .videos import VideoRepository

__all__ = ["CommentRepository", "UserRepository", "VideoRepository"]
