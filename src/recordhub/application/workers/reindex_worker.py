"""Reindex Worker - the background loop that keeps the catalog complete.

Hey future me - this is the ONLY long-lived background task in the app. Every tick it opens a
fresh session, asks ReindexService for one bounded batch of albums without tracks and one of
artists without albums, and goes back to sleep. All retry state lives in the DB, so:

- a restart picks up exactly where the last run left off
- only ONE instance should run this loop (it's a singleton scheduler, not a worker pool)
- a failing tick is logged and the next tick tries again, the loop never dies

External calls are bounded by the HTTP client timeouts, a tick can't hang forever.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from recordhub.application.services.reindex_service import ReindexService
from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.config.settings import ReindexerSettings

logger = logging.getLogger(__name__)


class ReindexWorker:
    """Periodically reindexes deficient albums and artists.

    Lifecycle:
    - Created in main.py's lifespan when reindexer.enabled is set
    - Runs as an asyncio task via start()
    - Stopped during shutdown via stop()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sources: MetadataSourceRegistry,
        settings: ReindexerSettings,
    ) -> None:
        self._session_factory = session_factory
        self._sources = sources
        self._settings = settings
        self._running = False
        self._stats: dict[str, Any] = {
            "ticks": 0,
            "albums_reindexed": 0,
            "albums_failed": 0,
            "artists_reindexed": 0,
            "artists_failed": 0,
            "last_tick_at": None,
            "last_error": None,
        }

    async def start(self) -> None:
        """Run until stop() is called."""
        self._running = True
        logger.info(
            f"ReindexWorker started (tick={self._settings.tick_seconds}s, "
            f"max_retries={self._settings.max_retries}, "
            f"retry_interval={self._settings.retry_interval_seconds}s)"
        )

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                # Log but don't crash - next tick tries again
                logger.exception(f"ReindexWorker tick failed: {e}")
                self._stats["last_error"] = str(e)

            await asyncio.sleep(self._settings.tick_seconds)

    def stop(self) -> None:
        """Signal the worker to stop after the current tick."""
        self._running = False
        logger.info("ReindexWorker stopping...")

    async def run_once(self) -> None:
        """One tick: an album batch, then an artist batch."""
        async with self._session_factory() as session:
            service = ReindexService(session, self._sources, self._settings)

            albums = await service.reindex_albums(limit=self._settings.album_batch_size)
            self._stats["albums_reindexed"] += albums.succeeded
            self._stats["albums_failed"] += albums.failed

            artists = await service.reindex_artists(limit=self._settings.artist_batch_size)
            self._stats["artists_reindexed"] += artists.succeeded
            self._stats["artists_failed"] += artists.failed

        self._stats["ticks"] += 1
        self._stats["last_tick_at"] = datetime.now(UTC)

        if albums.candidates or artists.candidates:
            logger.info(
                f"Reindex tick: albums {albums.succeeded}/{albums.candidates} ok, "
                f"artists {artists.succeeded}/{artists.candidates} ok"
            )
        else:
            logger.debug("Reindex tick: nothing to do")

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "running": self._running,
            "tick_seconds": self._settings.tick_seconds,
        }


def create_reindex_worker(
    session_factory: async_sessionmaker[AsyncSession],
    sources: MetadataSourceRegistry,
    settings: ReindexerSettings,
) -> ReindexWorker:
    """Create a ReindexWorker with the given configuration."""
    return ReindexWorker(session_factory=session_factory, sources=sources, settings=settings)
