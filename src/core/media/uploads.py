"""
Upload orchestration.

One upload request moves through a fixed sequence of states:

    Idle -> Authenticating -> Validating -> Transferring -> Persisting -> Done

and any state can exit to Failed. The ordering is the point: nothing is
written to the catalog until storage has confirmed a durable write, and
nothing is written to storage until the caller is authorized and the
declared size is within the ceiling.

A transfer failure is terminal for the attempt. Retrying is left to the
user, who can simply submit again.

If the catalog write fails after a successful transfer, the stored
object is left behind. It is logged with its key so it can be found,
but it is not deleted automatically.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, Protocol, TypeVar

from ..auth.credentials import Principal, TokenService
from ..errors import AppError, Forbidden, StorageUnavailable, ValidationError
from .models import MediaKind, Role, UploadResult, Video

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UploadState(Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    VALIDATING = "validating"
    TRANSFERRING = "transferring"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class UploadStorage(Protocol):
    """What the orchestrator needs from a storage client."""

    @property
    def policy(self): ...

    async def store(
        self,
        file_data: bytes,
        filename: str,
        content_type: str,
        size_bytes: int,
        kind: MediaKind,
    ) -> UploadResult: ...


class VideoCatalog(Protocol):
    def create_video(self, title: str, hashtags: str, url: str) -> Video: ...


@dataclass
class IncomingFile:
    """
    A file received in a multipart request, not yet read.

    `declared_size` is what the transport reported; it lets oversized
    files be refused before the body is read and sent anywhere.
    """
    filename: str
    content_type: str
    declared_size: Optional[int]
    read: Callable[[], Awaitable[bytes]]


@dataclass
class UploadAttempt:
    """Progress of one upload through the state machine."""
    kind: MediaKind
    state: UploadState = UploadState.IDLE
    history: list[UploadState] = field(default_factory=lambda: [UploadState.IDLE])
    principal: Optional[Principal] = None
    result: Optional[UploadResult] = None
    failure_reason: Optional[str] = None

    def advance(self, state: UploadState) -> None:
        logger.debug(
            "Upload state transition",
            extra={"kind": self.kind.value, "from": self.state.value, "to": state.value}
        )
        self.state = state
        self.history.append(state)

    def fail(self, reason: str) -> None:
        self.failure_reason = reason
        self.advance(UploadState.FAILED)


@dataclass
class UploadOutcome(Generic[T]):
    """The record created from an upload, plus the storage details."""
    record: T
    upload: UploadResult
    attempt: UploadAttempt


class UploadOrchestrator:
    """
    Ties authentication, validation, storage and catalog writes together.

    The orchestrator is stateless between requests; one instance can be
    shared, each call tracks its own UploadAttempt.
    """

    def __init__(
        self,
        tokens: TokenService,
        storage: UploadStorage,
        videos: VideoCatalog,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._tokens = tokens
        self._storage = storage
        self._videos = videos
        self._timeout = timeout_seconds

    async def upload_video(
        self,
        token: Optional[str],
        file: Optional[IncomingFile],
        title: str,
        hashtags: str = "",
    ) -> UploadOutcome[Video]:
        """Admin-only: store a video and publish it in the catalog."""
        title = (title or "").strip()
        hashtags = (hashtags or "").strip()

        def validate() -> None:
            if not title:
                raise ValidationError("Title is required")

        def persist(principal: Principal, result: UploadResult) -> Video:
            return self._videos.create_video(title=title, hashtags=hashtags, url=result.url)

        return await self.run(
            token,
            file,
            kind=MediaKind.VIDEO,
            required_role=Role.ADMIN,
            persist=persist,
            validate=validate,
        )

    async def upload_avatar(
        self,
        token: Optional[str],
        file: Optional[IncomingFile],
        persist: Callable[[Principal, UploadResult], T],
    ) -> UploadOutcome[T]:
        """Any authenticated user: store a profile file, then apply it."""
        return await self.run(
            token,
            file,
            kind=MediaKind.GENERIC,
            required_role=None,
            persist=persist,
        )

    async def run(
        self,
        token: Optional[str],
        file: Optional[IncomingFile],
        kind: MediaKind,
        required_role: Optional[Role],
        persist: Callable[[Principal, UploadResult], T],
        validate: Optional[Callable[[], None]] = None,
    ) -> UploadOutcome[T]:
        attempt = UploadAttempt(kind=kind)

        try:
            attempt.advance(UploadState.AUTHENTICATING)
            principal = self._tokens.verify_token(token)
            if required_role is not None and principal.role != required_role:
                logger.warning(
                    "Upload refused for role",
                    extra={"user_id": principal.user_id, "role": principal.role.value}
                )
                raise Forbidden()
            attempt.principal = principal

            attempt.advance(UploadState.VALIDATING)
            if file is None:
                raise ValidationError(
                    "No video file uploaded" if kind == MediaKind.VIDEO else "No file uploaded"
                )
            # Advisory: storage repeats the check against the real payload
            if file.declared_size is not None:
                self._storage.policy.check_size(file.declared_size, kind)
            if validate is not None:
                validate()

            attempt.advance(UploadState.TRANSFERRING)
            attempt.result = await self._transfer(file, kind)

            attempt.advance(UploadState.PERSISTING)
            try:
                record = await asyncio.to_thread(persist, principal, attempt.result)
            except Exception:
                logger.error(
                    "Catalog write failed after upload; stored object is orphaned",
                    extra={"storage_key": attempt.result.key, "url": attempt.result.url},
                )
                raise

            attempt.advance(UploadState.DONE)

        except Exception as e:
            attempt.fail(e.message if isinstance(e, AppError) else str(e))
            raise

        logger.info(
            "Upload completed",
            extra={
                "kind": kind.value,
                "user_id": principal.user_id,
                "storage_key": attempt.result.key,
                "size_bytes": attempt.result.size_bytes,
            }
        )

        return UploadOutcome(record=record, upload=attempt.result, attempt=attempt)

    async def _transfer(self, file: IncomingFile, kind: MediaKind) -> UploadResult:
        data = await file.read()
        store = self._storage.store(
            file_data=data,
            filename=file.filename,
            content_type=file.content_type,
            size_bytes=len(data),
            kind=kind,
        )
        try:
            if self._timeout:
                return await asyncio.wait_for(store, timeout=self._timeout)
            return await store
        except asyncio.TimeoutError:
            logger.error(
                "Upload timed out",
                extra={"upload_filename": file.filename, "timeout_seconds": self._timeout}
            )
            raise StorageUnavailable("Upload timed out")
