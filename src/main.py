"""
FastAPI application entry point.

`create_app()` builds a fully wired application; tests call it directly
and swap backends through `app.dependency_overrides`.

Local development:
    uvicorn src.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api.routes import auth, comments, health, videos
from .config.settings import get_settings
from .core.errors import AppError

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=get_settings().log_level.upper(),
)

logger = logging.getLogger(__name__)

ROUTERS = [
    (health.router, "/health", "Health"),
    (auth.router, "/api/auth", "Auth"),
    (videos.router, "/api/videos", "Videos"),
    (comments.router, "/api/comments", "Comments"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Check configuration before serving.

    The signing secret is read once here and never changes while the
    process runs, so a missing JWT_SECRET stops startup outright. Other
    gaps are logged and show up in /health/ready.
    """
    settings = get_settings()
    logger.info(
        "VidShare API starting",
        extra={
            "api_version": settings.api_version,
            "mongo_mock_mode": settings.mongo_mock_mode,
            "r2_mock_mode": settings.r2_mock_mode,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error("Missing required configuration", extra={"missing_fields": missing_fields})
    if "JWT_SECRET" in missing_fields:
        raise RuntimeError("JWT_SECRET must be set before the API can start")

    yield

    logger.info("VidShare API shutting down")


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_error_handlers(app: FastAPI) -> None:
    """Every failure leaves the API as `{"message": ...}` with a status code."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_type": type(exc).__name__,
                "status_code": exc.status_code,
                "error": exc.message,
            }
        )
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"message": _format_validation_errors(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = "Route not found"
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # Full detail goes to the log, never to the client
        logger.error(
            "Unhandled exception",
            extra={"path": request.url.path, "method": request.method, "error": str(exc)},
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error. Please contact support if this persists."},
        )


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Video-sharing backend.

        Protected endpoints take `Authorization: Bearer <token>`;
        get one from `POST /api/auth/login`. Admins publish with
        `POST /api/videos/upload`, everyone browses `GET /api/videos/`
        and comments with `POST /api/comments/add`.
        """,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router, prefix, tag in ROUTERS:
        app.include_router(router, prefix=prefix, tags=[tag])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "VidShare API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    register_error_handlers(app)

    logger.debug("FastAPI application created", extra={"routers": [prefix for _, prefix, _ in ROUTERS]})

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=get_settings().log_level.lower(),
    )
