"""
ClipCast API - FastAPI Application Entry Point.

This module initializes the FastAPI application:
- Lifespan management: logging setup, asset and staging directories, MongoDB
- CORS middleware and request timing/logging middleware
- Static serving of published thumbnails under /assets
- Upload and video routers under /api/v1
- Health and readiness endpoints
- A single exception handler rendering upload pipeline errors as JSON

Run with:
    uvicorn app.main:app --host 0.0.0.0 --port 8091
"""

import logging
import time

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import uvicorn

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app import __version__
from app.api.v1 import api_router
from app.config import get_settings
from app.core.database import close_db, get_db_client, init_db
from app.core.exceptions import Unauthenticated, UploadPipelineError
from app.utils.logger import setup_logging


logger = logging.getLogger(__name__)

HTTP_ERROR_THRESHOLD = 400

GENERIC_SERVER_ERROR_MESSAGE = "The upload could not be completed. Please try again later."


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Startup: configure logging, create the asset and staging directories and
    connect to MongoDB. Shutdown: close the MongoDB connection.
    """
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.json_logs, log_dir=settings.log_dir)

    logger.info("=" * 60)
    logger.info("ClipCast API Starting...")
    logger.info("=" * 60)
    logger.info("Application: %s", settings.app_name)
    logger.info("Environment: %s", settings.app_env)
    logger.info("Host: %s:%d", settings.host, settings.port)

    for directory in (settings.assets_root, settings.staging_root):
        Path(directory).mkdir(parents=True, exist_ok=True)
    logger.info("Assets root: %s, staging root: %s", settings.assets_root, settings.staging_root)

    try:
        await init_db(settings)
    except RuntimeError:
        logger.exception("Failed to initialize MongoDB")
        raise

    logger.info("ClipCast API Ready to Accept Requests")

    yield

    logger.info("ClipCast API Shutting Down...")
    await close_db()
    logger.info("ClipCast API Shutdown Complete")


# =============================================================================
# FastAPI Application Instance
# =============================================================================

_settings = get_settings()

app = FastAPI(
    title="ClipCast API",
    description="Thumbnail and video uploads for ClipCast video records.",
    version=__version__,
    docs_url=None if _settings.is_production else "/docs",
    redoc_url=None if _settings.is_production else "/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=_settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    """Log each request and add X-Request-ID and X-Process-Time headers."""
    request_id = f"{time.time_ns()}"
    start_time = time.perf_counter()

    logger.debug("Request started: %s %s [Request-ID: %s]", request.method, request.url.path, request_id)

    response = await call_next(request)

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.DEBUG if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    logger.log(
        log_level,
        "Request completed: %s %s [Status: %d] [Time: %sms] [Request-ID: %s]",
        request.method,
        request.url.path,
        response.status_code,
        process_time_ms,
        request_id,
    )
    return response


# =============================================================================
# Routes
# =============================================================================

app.include_router(api_router, prefix="/api/v1")

# Published thumbnails; the directory is created during startup
app.mount(
    "/assets",
    StaticFiles(directory=_settings.assets_root, check_dir=False),
    name="assets",
)


@app.get("/", tags=["root"])
async def root() -> dict[str, Any]:
    return {
        "name": "ClipCast API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health", tags=["health"], summary="Liveness check")
async def health_check() -> dict[str, Any]:
    """Returns immediately without touching any dependency."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "ClipCast Backend",
    }


@app.get("/ready", tags=["health"], summary="Readiness check")
async def readiness_check() -> JSONResponse:
    """
    Readiness check for Kubernetes-style deployments.

    Ready only when MongoDB answers a ping; responds 503 otherwise.
    """
    try:
        mongodb_healthy = await get_db_client().ping()
    except RuntimeError:
        mongodb_healthy = False

    return JSONResponse(
        status_code=200 if mongodb_healthy else 503,
        content={
            "ready": mongodb_healthy,
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": {"mongodb": mongodb_healthy},
        },
    )


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(UploadPipelineError)
async def upload_pipeline_error_handler(
    request: Request, exc: UploadPipelineError
) -> JSONResponse:
    """
    Render pipeline errors as structured JSON.

    Client errors carry their specific message. Server errors get a generic
    message; the details are already in the logs.
    """
    if exc.is_client_error:
        message = exc.message
    else:
        logger.error(
            "Upload pipeline error on %s %s: %s (%s)",
            request.method,
            request.url.path,
            exc.error,
            exc.message,
        )
        message = GENERIC_SERVER_ERROR_MESSAGE

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": message, "status_code": exc.status_code},
        headers=headers,
    )


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug and _settings.is_development,
        log_level=_settings.log_level,
    )
