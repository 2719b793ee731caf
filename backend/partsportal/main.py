# ============================================================================
# Parts Portal - FastAPI Application Entry Point
# ============================================================================
"""
Main FastAPI application module for the Parts Portal backend.

This module sets up the FastAPI application with:
- CORS middleware configuration for the web frontend
- Application startup/shutdown event handlers
- Mapping of domain errors to HTTP responses
- API router integration

Usage:
    Direct: python -m partsportal.main
    Docker: uvicorn partsportal.main:app --host 0.0.0.0 --port 8000
"""

import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.v1 import api_router
from .api.v1.models import ErrorResponse, PartialUploadResponse
from .config import settings
from .core.errors import (
    AuthorizationError,
    InvalidFilterError,
    NotFoundError,
    PartialIngestionFailure,
    PortalError,
    StorageUnavailableError,
    SubmissionValidationError,
)
from .core.shared.database_service import database_service
from .core.storage.minio_service import get_minio_service

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("partsportal.main")

# ============================================================================
# APPLICATION INITIALIZATION
# ============================================================================

app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=(
        "Parts Portal API\n\n"
        "Vendors submit part numbers with supporting files; managers browse, "
        "filter and download everything submitted."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# ============================================================================
# APPLICATION EVENT HANDLERS
# ============================================================================


@app.on_event("startup")
async def startup_event() -> None:
    """
    Create catalog tables and make sure the parts bucket exists.

    A blob store that cannot be reached at startup is logged, not fatal;
    requests that need it fail with 503 until it comes back.
    """
    logger.info(f"Starting {settings.api_title} {settings.api_version} (debug={settings.debug})")
    await database_service.init_db()

    minio = get_minio_service()
    if minio is None:
        logger.warning("Object storage disabled; uploads and downloads will return 503")
        return
    try:
        await asyncio.to_thread(minio.ensure_bucket)
    except Exception as e:
        logger.error(f"Could not ensure bucket {minio.bucket}: {e}")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await database_service.close()
    logger.info("Shutdown complete")


# ============================================================================
# ERROR HANDLING
# ============================================================================

_STATUS_BY_ERROR = (
    (SubmissionValidationError, 400, "Validation Error"),
    (InvalidFilterError, 400, "Invalid Filter"),
    (AuthorizationError, 403, "Forbidden"),
    (NotFoundError, 404, "Not Found"),
    (StorageUnavailableError, 503, "Storage Unavailable"),
)


@app.exception_handler(PortalError)
async def portal_exception_handler(request: Request, exc: PortalError) -> JSONResponse:
    """
    Map domain errors raised by the core services to HTTP responses.

    A partial ingestion failure is reported as one failure (502) even though
    the upload and some of its files were kept; the body says which.
    """
    if isinstance(exc, PartialIngestionFailure):
        body = PartialUploadResponse(
            detail=exc.message,
            upload_id=exc.upload_id,
            expected=exc.expected,
            persisted=exc.persisted,
            failures=exc.failures,
        )
        return JSONResponse(status_code=502, content=body.model_dump(mode="json"))

    for error_type, status_code, label in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return JSONResponse(
                status_code=status_code,
                content=ErrorResponse(error=label, detail=exc.message).model_dump(),
            )

    logger.error(f"Unmapped domain error on {request.url.path}: {exc!r}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal Error", detail=exc.message).model_dump(),
    )


# ============================================================================
# ROUTES
# ============================================================================

app.include_router(api_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    return {"name": settings.api_title, "version": settings.api_version, "docs": "/docs"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("partsportal.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
