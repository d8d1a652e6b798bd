"""Application lifecycle: startup and shutdown for the FastAPI app.

Startup: logging, database (tables created if missing), metadata sources, reindex worker.
Shutdown runs in reverse and always runs, even when startup failed halfway.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from recordhub.application.sources import build_default_registry
from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.application.workers.reindex_worker import ReindexWorker, create_reindex_worker
from recordhub.config import Settings, get_settings
from recordhub.infrastructure.observability import configure_logging
from recordhub.infrastructure.persistence import Database

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 10.0


# Listen future me, everything before `yield` is startup, everything after is shutdown. Tests
# pre-seed app.state.settings and app.state.sources (fake adapters) and we keep those instead
# of building real HTTP clients.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    app.state.settings = settings

    configure_logging(
        log_level=settings.observability.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info(f"Starting application: {settings.app_name}")

    worker: ReindexWorker | None = None
    worker_task: asyncio.Task[None] | None = None
    try:
        db = Database(settings)
        await db.create_tables()
        app.state.db = db
        logger.info(f"Database initialized: {settings.database.url}")

        sources: MetadataSourceRegistry | None = getattr(app.state, "sources", None)
        if sources is None:
            sources = build_default_registry(settings)
            app.state.sources = sources
        logger.info(
            "Metadata sources: "
            + ", ".join(adapter.source.value for adapter in sources.in_priority_order())
        )

        if settings.reindexer.enabled:
            worker = create_reindex_worker(db.session_factory, sources, settings.reindexer)
            worker_task = asyncio.create_task(worker.start(), name="reindex_worker")
            app.state.reindex_worker = worker
        else:
            logger.info("Reindex worker disabled")

        yield

    finally:
        logger.info("Shutting down application")

        if worker is not None and worker_task is not None:
            worker.stop()
            # The loop sleeps between ticks, cancelling is the quick way out
            worker_task.cancel()
            with suppress(asyncio.CancelledError, TimeoutError):
                await asyncio.wait_for(worker_task, timeout=SHUTDOWN_TIMEOUT_SECONDS)
            logger.info("Reindex worker stopped")

        sources = getattr(app.state, "sources", None)
        if sources is not None:
            try:
                await sources.close()
            except Exception as e:
                logger.exception(f"Error closing metadata sources: {e}")

        db = getattr(app.state, "db", None)
        if db is not None:
            try:
                await db.close()
                logger.info("Database connection closed")
            except Exception as e:
                logger.exception(f"Error closing database: {e}")
