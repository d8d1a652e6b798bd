"""Tests for ReindexWorker.

Tests the background loop that retries albums without tracks and artists without albums.
"""

import uuid
from unittest.mock import AsyncMock

from pytest_mock import MockerFixture

from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.application.workers.reindex_worker import ReindexWorker, create_reindex_worker
from recordhub.config import ReindexerSettings
from recordhub.domain.entities import CanonicalAlbum, ExternalIds, Source
from recordhub.infrastructure.persistence import Database
from recordhub.infrastructure.persistence.repositories import AlbumRepository, TrackRepository

# Hey future me - these tests verify the worker:
# 1. Runs one album batch and one artist batch per tick against a real session
# 2. Keeps its stats across ticks
# 3. Survives a failing tick and stops when told to


async def _store_empty_album(db: Database) -> str:
    async with db.session_factory() as session:
        album, _ = await AlbumRepository(session).insert_if_absent(
            CanonicalAlbum(
                id=str(uuid.uuid4()),
                title="Kind of Blue",
                artist="Miles Davis",
                external_ids=ExternalIds(discogs_id="1"),
            ),
            Source.DISCOGS,
        )
        await session.commit()
        return album.id


class TestReindexWorker:
    """Test ReindexWorker functionality."""

    async def test_run_once_fills_album(
        self,
        db: Database,
        sources: MetadataSourceRegistry,
        reindexer_settings: ReindexerSettings,
        discogs,
    ) -> None:
        """A tick indexes the missing tracks and counts the success."""
        album_id = await _store_empty_album(db)
        discogs.add_release("1", "Kind of Blue", "Miles Davis", [("So What", "A1")])
        worker = create_reindex_worker(db.session_factory, sources, reindexer_settings)

        await worker.run_once()

        stats = worker.get_stats()
        assert stats["ticks"] == 1
        assert stats["albums_reindexed"] == 1
        assert stats["albums_failed"] == 0
        assert stats["last_tick_at"] is not None
        async with db.session_factory() as session:
            assert await TrackRepository(session).count_by_album(album_id) == 1

    async def test_failures_accumulate(
        self,
        db: Database,
        sources: MetadataSourceRegistry,
        reindexer_settings: ReindexerSettings,
    ) -> None:
        """Nothing upstream means a failed attempt per tick."""
        await _store_empty_album(db)
        worker = ReindexWorker(db.session_factory, sources, reindexer_settings)

        await worker.run_once()
        await worker.run_once()

        assert worker.get_stats()["albums_failed"] == 2

    async def test_failed_tick_does_not_kill_loop(
        self,
        db: Database,
        sources: MetadataSourceRegistry,
        reindexer_settings: ReindexerSettings,
        mocker: MockerFixture,
    ) -> None:
        """A tick that raises is recorded and the loop sleeps until stop()."""
        worker = ReindexWorker(db.session_factory, sources, reindexer_settings)
        mocker.patch.object(worker, "run_once", AsyncMock(side_effect=RuntimeError("boom")))

        async def fake_sleep(_seconds: float) -> None:
            worker.stop()

        sleep = mocker.patch(
            "recordhub.application.workers.reindex_worker.asyncio.sleep", side_effect=fake_sleep
        )

        await worker.start()

        sleep.assert_awaited_once_with(reindexer_settings.tick_seconds)
        stats = worker.get_stats()
        assert stats["last_error"] == "boom"
        assert stats["running"] is False
