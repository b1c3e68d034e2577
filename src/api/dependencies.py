"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be mocked for testing
- Configuration is centralized
- Resource lifecycle (connections, clients) is managed properly

Each dependency is a function that FastAPI calls when needed.
"""

import logging
import threading
from datetime import timedelta
from typing import Annotated, Optional

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import Settings, get_settings
from ..core.auth.credentials import Principal, TokenService
from ..core.media.feed import FeedService
from ..core.media.policy import UploadPolicy
from ..core.media.uploads import UploadOrchestrator
from ..infrastructure.mongo.client import DocumentDatabase, MongoConfig, create_database
from ..infrastructure.mongo.repositories import (
    CommentRepository,
    UserRepository,
    VideoRepository,
)
from ..infrastructure.storage.client import StorageClient, StorageConfig, create_storage_client

logger = logging.getLogger(__name__)

# Bearer token security scheme. auto_error is off so a missing header
# reaches our own error handling as Unauthenticated.
bearer_scheme = HTTPBearer(auto_error=False)

# Process-wide instances. The real clients own connection pools that are
# safe to share; the mocks are shared so data persists across requests.
# Sync dependencies run in a threadpool, so first use is guarded by a lock.
_database = None
_storage_client = None
_init_lock = threading.Lock()


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def get_database(
    settings: Annotated[Settings, Depends(get_settings)],
) -> DocumentDatabase:
    """
    Provide the document database.

    Created on first use, with indexes ensured once. In mock mode the
    in-memory database lives for the whole process.
    """
    global _database

    if _database is None:
        with _init_lock:
            if _database is None:
                config = MongoConfig(uri=settings.mongo_uri, database=settings.mongo_database)
                database = create_database(config=config, mock_mode=settings.mongo_mock_mode)

                UserRepository(database).ensure_indexes()
                VideoRepository(database).ensure_indexes()
                CommentRepository(database).ensure_indexes()

                _database = database
                logger.info(
                    "Database ready",
                    extra={"database": settings.mongo_database, "mock_mode": settings.mongo_mock_mode}
                )

    return _database


def get_user_repository(
    database: Annotated[DocumentDatabase, Depends(get_database)],
) -> UserRepository:
    return UserRepository(database)


def get_video_repository(
    database: Annotated[DocumentDatabase, Depends(get_database)],
) -> VideoRepository:
    return VideoRepository(database)


def get_comment_repository(
    database: Annotated[DocumentDatabase, Depends(get_database)],
) -> CommentRepository:
    return CommentRepository(database)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def get_upload_policy(
    settings: Annotated[Settings, Depends(get_settings)],
) -> UploadPolicy:
    return UploadPolicy(
        max_video_bytes=settings.max_video_size_bytes,
        max_file_bytes=settings.max_file_size_bytes,
    )


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
    policy: Annotated[UploadPolicy, Depends(get_upload_policy)],
) -> StorageClient:
    """
    Provide storage client for uploads and metadata lookups.

    Returns either R2 client or mock client based on settings.
    """
    global _storage_client

    if _storage_client is None:
        with _init_lock:
            if _storage_client is None and settings.r2_mock_mode:
                _storage_client = create_storage_client(policy, mock_mode=True)
                logger.info("Created shared mock storage client")
            elif _storage_client is None:
                config = StorageConfig(
                    access_key_id=settings.r2_access_key_id,
                    secret_access_key=settings.r2_secret_access_key,
                    bucket_name=settings.r2_bucket_name,
                    endpoint_url=settings.r2_endpoint,
                    public_base_url=settings.r2_public_base_url,
                )
                _storage_client = create_storage_client(policy, config=config)
                logger.info("Created R2 storage client")

    return _storage_client


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def get_token_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenService:
    expiry = timedelta(hours=settings.jwt_expiry_hours) if settings.jwt_expiry_hours > 0 else None
    return TokenService(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expiry=expiry,
    )


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Optional[str]:
    """Raw token from `Authorization: Bearer <token>`, or None."""
    return credentials.credentials if credentials else None


async def get_current_principal(
    token: Annotated[Optional[str], Depends(get_bearer_token)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> Principal:
    """
    Verify the bearer token.

    Raises Unauthenticated (401) when missing and InvalidToken (403)
    when it doesn't verify. The role is taken from the token as-is.
    """
    return tokens.verify_token(token)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

def get_upload_orchestrator(
    settings: Annotated[Settings, Depends(get_settings)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
    videos: Annotated[VideoRepository, Depends(get_video_repository)],
) -> UploadOrchestrator:
    return UploadOrchestrator(
        tokens=tokens,
        storage=storage,
        videos=videos,
        timeout_seconds=settings.upload_timeout_seconds,
    )


def get_feed_service(
    videos: Annotated[VideoRepository, Depends(get_video_repository)],
    comments: Annotated[CommentRepository, Depends(get_comment_repository)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> FeedService:
    return FeedService(videos=videos, comments=comments, authors=users)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
DatabaseDep = Annotated[DocumentDatabase, Depends(get_database)]
UserRepositoryDep = Annotated[UserRepository, Depends(get_user_repository)]
CommentRepositoryDep = Annotated[CommentRepository, Depends(get_comment_repository)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
TokenServiceDep = Annotated[TokenService, Depends(get_token_service)]
BearerToken = Annotated[Optional[str], Depends(get_bearer_token)]
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
UploadOrchestratorDep = Annotated[UploadOrchestrator, Depends(get_upload_orchestrator)]
FeedServiceDep = Annotated[FeedService, Depends(get_feed_service)]
