"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__, migrations
from .config import get_settings
from .database import get_engine
from .exceptions import InventoryError
from .routes import adjustments, products

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()

    app = FastAPI(title=settings.app_name, version=__version__)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )

    @app.exception_handler(InventoryError)
    async def handle_inventory_error(request: Request, exc: InventoryError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": "Invalid request.", "details": problems})

    @app.on_event("startup")
    def on_startup() -> None:
        if settings.auto_migrate:
            applied = migrations.migrate(get_engine())
            if applied:
                logger.info("Applied %d migration(s) on startup", len(applied))

    @app.get("/health", tags=["system"])
    def health_check() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(products.router, prefix=settings.api_prefix)
    app.include_router(adjustments.router, prefix=settings.api_prefix)
    return app
