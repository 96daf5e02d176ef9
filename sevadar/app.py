"""
FastAPI application entry point for the Sevadar backend.
"""

from __future__ import annotations

from fastapi import FastAPI

from sevadar.admin_routes import admin_router, cron_router
from sevadar.config import get_settings
from sevadar.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Sevadar Backend", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(admin_router, prefix=settings.api_prefix)
    app.include_router(cron_router, prefix=settings.api_prefix)
    return app


app = create_app()
