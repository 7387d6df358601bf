"""
Tubely FastAPI Application Entry Point

This module builds the Tubely video ingestion API:

- FastAPI application with lifespan-managed MongoDB and S3 clients
- CORS middleware and request logging middleware (X-Request-ID, X-Process-Time)
- API router registration under the /api/v1 prefix
- Exception handlers rendering pipeline errors as JSON
- Thumbnail assets served from /assets
- Health and readiness endpoints

API Structure:
    /api/v1/videos    - Video upload, thumbnail upload, read and list endpoints
    /assets           - Thumbnail images

Usage:
    # Run with uvicorn directly
    uvicorn tubely.main:app --host 0.0.0.0 --port 8091

    # Run as Python module
    python -m tubely.main
"""

import logging
import time
import uuid

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from tubely import __version__
from tubely.api.v1 import api_router
from tubely.config import get_settings
from tubely.core.database import close_db, get_db_client, init_db
from tubely.core.errors import TubelyError
from tubely.core.storage import get_storage_client
from tubely.services.thumbnail_service import ASSETS_URL_PATH
from tubely.utils.logger import add_log_context, setup_logging


# Configure module logger
logger = logging.getLogger(__name__)

# Status codes >= 400 indicate errors
HTTP_ERROR_THRESHOLD = 400


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Manage application lifecycle events for startup and shutdown.

    - Startup: configure logging, connect MongoDB, create the S3 client
    - Shutdown: close the MongoDB connection
    """
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.json_logs)

    logger.info(
        "Tubely API starting",
        extra={
            "app_env": settings.app_env,
            "host": settings.host,
            "port": settings.port,
            "bucket": settings.s3_bucket_name,
        },
    )

    try:
        await init_db(settings)
    except Exception as e:
        logger.exception("Failed to initialize MongoDB")
        raise RuntimeError(f"MongoDB initialization failed: {e}") from e

    get_storage_client()

    logger.info("Tubely API ready to accept requests")

    yield

    logger.info("Tubely API shutting down")
    await close_db()
    logger.info("Tubely API shutdown complete")


# =============================================================================
# FastAPI Application Instance
# =============================================================================

_settings = get_settings()

app = FastAPI(
    title="Tubely API",
    description=(
        "Video ingestion service: uploads are classified by aspect ratio, remuxed "
        "for progressive playback and stored in S3-compatible storage. Playback "
        "URLs are presigned on every read."
    ),
    version=__version__,
    # Interactive docs are not served in production
    docs_url=None if _settings.is_production else "/docs",
    redoc_url=None if _settings.is_production else "/redoc",
    openapi_url=None if _settings.is_production else "/openapi.json",
    lifespan=lifespan,
    debug=_settings.debug,
)


# =============================================================================
# Middleware Configuration
# =============================================================================

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
    """
    Log each request with its duration and tag the response with
    ``X-Request-ID`` and ``X-Process-Time``.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request_logger = add_log_context(
        logger, request_id=request_id, method=request.method, path=request.url.path
    )
    start_time = time.perf_counter()

    request_logger.debug("Request started")

    try:
        response = await call_next(request)
    except Exception:
        request_logger.exception("Request failed")
        raise

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.INFO if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    request_logger.log(
        log_level,
        "Request completed",
        extra={"status_code": response.status_code, "process_time_ms": process_time_ms},
    )

    return response


# =============================================================================
# Routes and Static Assets
# =============================================================================

app.include_router(api_router, prefix="/api/v1")

app.mount(
    ASSETS_URL_PATH,
    StaticFiles(directory=_settings.assets_root, check_dir=False),
    name="assets",
)


@app.get("/health", tags=["health"], summary="Health Check")
async def health_check() -> dict[str, Any]:
    """Liveness probe: reports that the process is serving requests."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": __version__,
        "service": "Tubely API",
    }


@app.get("/ready", tags=["health"], summary="Readiness Check")
async def readiness_check() -> JSONResponse:
    """Readiness probe: verifies that MongoDB answers a ping."""
    try:
        mongodb_ready = await get_db_client().ping()
    except RuntimeError:
        mongodb_ready = False

    return JSONResponse(
        status_code=status.HTTP_200_OK if mongodb_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "ready": mongodb_ready,
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": {"mongodb": mongodb_ready},
        },
    )


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(TubelyError)
async def tubely_error_handler(request: Request, exc: TubelyError) -> JSONResponse:
    """Render pipeline errors with their status and user-safe message."""
    log_level = (
        logging.ERROR
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR
        else logging.INFO
    )
    logger.log(
        log_level,
        "Request failed with %s",
        exc.error,
        extra={"path": request.url.path, "status_code": exc.status_code},
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(404)
async def not_found_handler(request: Request, _exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not Found",
            "message": f"The requested path '{request.url.path}' was not found",
            "status_code": 404,
            "path": str(request.url.path),
        },
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unhandled errors and return a generic body without internal details."""
    logger.error(
        "Internal server error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred. Please try again later.",
            "status_code": 500,
        },
    )


# =============================================================================
# Main Execution Block
# =============================================================================

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "tubely.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
        access_log=settings.debug,
    )
