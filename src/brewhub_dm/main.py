"""Main entry point for the BrewHub messaging service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from brewhub_dm.api.middleware import EdgeRateLimitMiddleware
from brewhub_dm.api.v1 import (
    admin_reports_router,
    blocks_router,
    conversations_router,
    media_router,
    messages_router,
    reports_router,
)
from brewhub_dm.core.settings import settings
from brewhub_dm.services.errors import DirectMessageError, RateLimitedError
from brewhub_dm.services.storage import get_object_storage

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Direct messages between BrewHub members",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Cheap per-IP filter in front of the persistent per-user limits
app.add_middleware(EdgeRateLimitMiddleware)

# Include API routers
app.include_router(conversations_router, prefix="/api/v1")
app.include_router(messages_router, prefix="/api/v1")
app.include_router(media_router, prefix="/api/v1")
app.include_router(blocks_router, prefix="/api/v1")
app.include_router(reports_router, prefix="/api/v1")
app.include_router(admin_reports_router, prefix="/api/v1")


@app.exception_handler(DirectMessageError)
async def direct_message_error_handler(request: Request, exc: DirectMessageError) -> JSONResponse:
    """Render domain failures as the error envelope."""
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "details": exc.detail},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed payloads and queries are reported as 400."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": "Invalid payload", "details": details or None})


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_object_storage().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("brewhub_dm.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
