"""FastAPI application factory.

Run with:
    uvicorn recordhub.main:create_app --factory
"""

import logging

from fastapi import FastAPI

from recordhub import __version__
from recordhub.api import api_router
from recordhub.api.exception_handlers import register_exception_handlers
from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.config import Settings, get_settings
from recordhub.infrastructure.lifecycle import lifespan
from recordhub.infrastructure.observability import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    sources: MetadataSourceRegistry | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use instead of the environment (tests)
        sources: Pre-built metadata sources instead of the real HTTP clients (tests)
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="RecordHub",
        description="Canonical music catalog built from MusicBrainz, Discogs and Spotify",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if sources is not None:
        app.state.sources = sources

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app
