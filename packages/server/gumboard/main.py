"""
Gumboard API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gumboard.core.config import get_settings
from gumboard.core.database import init_db
from gumboard.core.realtime import close_client, relay_enabled
from gumboard.api.v1 import router as api_v1_router

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Gumboard",
        description="Sticky-note boards for teams.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Client-Instance-Id"],
    )

    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness checks."""
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        log.info("Gumboard starting", realtime=relay_enabled())
        if settings.debug:
            await init_db()

    @app.on_event("shutdown")
    async def on_shutdown():
        await close_client()
        log.info("Gumboard stopped")

    return app


app = create_app()
