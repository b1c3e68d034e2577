"""
Health check endpoints.

- /health: liveness. Answers as long as the process is up.
- /health/ready: readiness. Checks configuration, the database and the
  storage bucket, and answers 503 if any of them fails.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ... import __version__
from ..dependencies import DatabaseDep, SettingsDep, StorageClientDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Outcome of one readiness check."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


async def _run_check(name: str, check: Callable[[], Awaitable[None]]) -> ReadinessCheck:
    try:
        await check()
    except Exception as e:
        logger.error("Readiness check failed", extra={"check": name, "error": str(e)})
        return ReadinessCheck(name=name, status="error", error=str(e))
    return ReadinessCheck(name=name, status="ok")


@router.get(
    "",
    response_model=HealthResponse,
    summary="Liveness check",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {
                "mongo": settings.mongo_mock_mode,
                "r2": settings.r2_mock_mode,
            }
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    responses={503: {"description": "A dependency is unavailable", "model": ReadinessResponse}},
)
async def readiness_check(
    settings: SettingsDep,
    database: DatabaseDep,
    storage: StorageClientDep,
):
    """Check every dependency a request may touch."""

    async def configuration() -> None:
        missing_fields = settings.validate_required_fields()
        if missing_fields:
            raise RuntimeError(f"Missing required fields: {', '.join(missing_fields)}")

    async def mongo() -> None:
        await asyncio.to_thread(database.command, "ping")

    checks = [
        await _run_check("configuration", configuration),
        await _run_check("database", mongo),
        await _run_check("storage", storage.ping),
    ]

    ready = all(check.status == "ok" for check in checks)
    response = ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=__version__,
        checks=checks,
    )

    if not ready:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response
