"""
FastAPI application entry point for the Runway AI backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from runway.auth import router as auth_router
from runway.config import get_settings
from runway.errors import StorageError, UpstreamServiceError
from runway.routes import router

logger = logging.getLogger(__name__)


def format_validation_errors(errors) -> str:
    parts = []
    for error in errors:
        loc = [str(item) for item in error.get("loc", ()) if item != "body"]
        field = ".".join(loc)
        message = error.get("msg", "Invalid value")
        parts.append(f"{field}: {message}" if field else message)
    return "; ".join(parts) or "Invalid request"


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400, content={"detail": format_validation_errors(exc.errors())}
    )


async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


async def upstream_error_handler(request: Request, exc: UpstreamServiceError):
    logger.error("Upstream failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="Runway AI Backend", version="0.1.0")
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
    app.add_exception_handler(UpstreamServiceError, upstream_error_handler)
    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
