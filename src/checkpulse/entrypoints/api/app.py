"""FastAPI application definition."""

from __future__ import annotations

from fastapi import FastAPI

from checkpulse.config import Settings
from checkpulse.logging import configure_logging

from .deps import lifespan
from .errors import register_exception_handlers
from .routes import api_router


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Run with ``uvicorn --factory checkpulse.entrypoints.api.app:create_app``.
    """
    settings = settings or Settings()
    configure_logging(settings.log_level, settings.log_json)

    app = FastAPI(
        title="checkpulse",
        description="Weekly check-in compliance and roster reconciliation",
        version="0.1.0",
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.settings = settings
    register_exception_handlers(app)

    # Include API routes
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
