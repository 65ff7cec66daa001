"""
FastAPI application entry point for the site content backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.config import get_settings
from backend.content_service import ServiceError
from backend.image_upload import ImageUploadError
from backend.routes import router
from shared.normalize import NormalizationError


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": str(exc)})


async def _upload_error_handler(request: Request, exc: ImageUploadError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _normalization_error_handler(
    request: Request, exc: NormalizationError
) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    app = FastAPI(title="Site Content Backend (FastAPI)", version="0.1.0")
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(ImageUploadError, _upload_error_handler)
    app.add_exception_handler(NormalizationError, _normalization_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
