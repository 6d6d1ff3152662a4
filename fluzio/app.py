"""
FastAPI application entry point for the Fluzio backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fluzio.config import get_settings
from fluzio.errors import FluzioError
from fluzio.routes import router

logger = logging.getLogger(__name__)


async def fluzio_error_handler(request: Request, exc: FluzioError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Fluzio Backend (FastAPI)", version="0.1.0")
    app.add_exception_handler(FluzioError, fluzio_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
