"""
FastAPI application entry point for the Snapgram API.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from snapgram.config import get_settings
from snapgram.errors import SnapgramError
from snapgram.routes import router

logger = logging.getLogger(__name__)


async def snapgram_error_handler(request: Request, exc: SnapgramError) -> JSONResponse:
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.message})


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Snapgram API", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    app.add_exception_handler(SnapgramError, snapgram_error_handler)
    return app


app = create_app()
