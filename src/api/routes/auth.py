"""
Account endpoints: signup, login, profile read and profile update.

Profile updates are multipart so an avatar can ride along with the
text fields. The avatar goes through the same upload orchestrator as
videos (any authenticated role, no format allow-list).
"""

import asyncio
import logging
from dataclasses import replace
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, UploadFile, status
from pydantic import Field

from ...core.auth.credentials import Principal, hash_password, verify_password
from ...core.errors import InvalidCredentials
from ...core.media.models import ProfileChanges, Role, UploadResult, User
from ...core.media.uploads import IncomingFile
from ..dependencies import (
    BearerToken,
    CurrentPrincipal,
    TokenServiceDep,
    UploadOrchestratorDep,
    UserRepositoryDep,
)
from ..schemas import CamelModel, FileDetails, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SignupRequest(CamelModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=1)
    role: Role = Field(default=Role.USER, description="user or admin")


class LoginRequest(CamelModel):
    email: str
    password: str


class LoginResponse(CamelModel):
    token: str
    user: UserResponse


class ProfileUpdateResponse(CamelModel):
    success: bool = True
    message: str = "Profile updated successfully"
    user: UserResponse
    file: Optional[FileDetails] = None


def to_incoming_file(upload: UploadFile) -> IncomingFile:
    """Adapt a Starlette UploadFile to the orchestrator's input."""
    return IncomingFile(
        filename=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
        declared_size=upload.size,
        read=upload.read,
    )


def _clean(value: Optional[str]) -> Optional[str]:
    """Trim a form value; blank means 'not provided'."""
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/signup",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
def signup(request: SignupRequest, users: UserRepositoryDep) -> UserResponse:
    user = users.create_user(
        username=request.username,
        email=request.email,
        password_hash=hash_password(request.password),
        role=request.role,
    )
    return UserResponse.from_user(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Exchange credentials for a bearer token",
)
def login(
    request: LoginRequest,
    users: UserRepositoryDep,
    tokens: TokenServiceDep,
) -> LoginResponse:
    """
    Check email and password and issue a token.

    Unknown email and wrong password produce the same error so the
    response doesn't reveal which accounts exist.
    """
    user = users.get_by_email(request.email)
    if user is None or not verify_password(request.password, user.password_hash):
        logger.info("Login rejected", extra={"email_known": user is not None})
        raise InvalidCredentials()

    token = tokens.issue_token(user.id, user.role)
    logger.info("User logged in", extra={"user_id": user.id})

    return LoginResponse(token=token, user=UserResponse.from_user(user))


@router.get(
    "/profile",
    response_model=UserResponse,
    summary="Get my profile",
)
def get_profile(principal: CurrentPrincipal, users: UserRepositoryDep) -> UserResponse:
    return UserResponse.from_user(users.get_by_id(principal.user_id))


@router.put(
    "/update",
    response_model=ProfileUpdateResponse,
    summary="Update my profile",
    description="Multipart form. Every field is optional; omitted fields keep their value.",
)
async def update_profile(
    principal: CurrentPrincipal,
    token: BearerToken,
    users: UserRepositoryDep,
    orchestrator: UploadOrchestratorDep,
    file: Annotated[Optional[UploadFile], File(description="New avatar")] = None,
    username: Annotated[Optional[str], Form()] = None,
    email: Annotated[Optional[str], Form()] = None,
    password: Annotated[Optional[str], Form()] = None,
    bio: Annotated[Optional[str], Form()] = None,
    location: Annotated[Optional[str], Form()] = None,
) -> ProfileUpdateResponse:
    """
    Apply a partial profile update, optionally with a new avatar.

    Database and hashing calls run in worker threads; the avatar goes
    through the upload orchestrator.
    """
    changes = ProfileChanges(
        username=_clean(username),
        email=_clean(email),
        password_hash=await asyncio.to_thread(hash_password, password) if password else None,
        bio=_clean(bio),
        location=_clean(location),
    )

    # Unknown user and taken email both fail before anything is uploaded
    await asyncio.to_thread(users.get_by_id, principal.user_id)
    if changes.email:
        await asyncio.to_thread(users.ensure_email_available, changes.email, principal.user_id)

    if file is None:
        user = await asyncio.to_thread(users.update_profile, principal.user_id, changes)
        return ProfileUpdateResponse(user=UserResponse.from_user(user))

    def apply_avatar(uploader: Principal, result: UploadResult) -> User:
        return users.update_profile(uploader.user_id, replace(changes, avatar_url=result.url))

    outcome = await orchestrator.upload_avatar(token, to_incoming_file(file), persist=apply_avatar)

    return ProfileUpdateResponse(
        user=UserResponse.from_user(outcome.record),
        file=FileDetails.from_upload(outcome.upload),
    )
