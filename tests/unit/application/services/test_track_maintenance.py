"""Tests for per-album track dedupe, renumbering and position normalization."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.application.services.track_maintenance import (
    TrackMaintenanceService,
    dedupe_key,
    pick_surviving_track,
)
from recordhub.domain.entities import CanonicalAlbum, ExternalIds, Source, Track, utc_now
from recordhub.infrastructure.persistence.models import TrackRankingModel
from recordhub.infrastructure.persistence.repositories import AlbumRepository, TrackRepository


def _track(album_id: str, title: str, number: int, position: str | None, **kwargs) -> Track:
    return Track(
        id=str(uuid.uuid4()),
        album_id=album_id,
        title=title,
        track_number=number,
        position=position,
        **kwargs,
    )


@pytest.fixture
async def album(session: AsyncSession) -> CanonicalAlbum:
    stored, _ = await AlbumRepository(session).insert_if_absent(
        CanonicalAlbum(
            id=str(uuid.uuid4()),
            title="Abbey Road",
            artist="The Beatles",
            external_ids=ExternalIds(discogs_id="1"),
        ),
        Source.DISCOGS,
    )
    return stored


@pytest.fixture
def service(session: AsyncSession) -> TrackMaintenanceService:
    return TrackMaintenanceService(TrackRepository(session), AlbumRepository(session))


class TestHelpers:
    def test_dedupe_key_prefers_normalized_position(self) -> None:
        assert dedupe_key(_track("a", "Come Together", 1, "a01")) == ("position", "A1")
        assert dedupe_key(_track("a", " Something ", 2, None)) == ("title", "something")

    def test_surviving_track_has_most_ids_then_is_oldest(self) -> None:
        now = utc_now()
        old = _track("a", "x", 1, "1", created_at=now - timedelta(days=1))
        with_id = _track("a", "x", 1, "1", created_at=now, musicbrainz_id="r1")
        also_old = _track("a", "x", 1, "1", created_at=now)

        assert pick_surviving_track([old, with_id, also_old]) is with_id
        assert pick_surviving_track([also_old, old]) is old


class TestTrackMaintenanceService:
    async def test_dedupe_and_renumber(
        self, service: TrackMaintenanceService, session: AsyncSession, album: CanonicalAlbum
    ) -> None:
        tracks = TrackRepository(session)
        plain, _ = await tracks.insert_if_absent(_track(album.id, "Come Together", 1, "A1"))
        richer, _ = await tracks.insert_if_absent(
            _track(album.id, "Come Together", 5, "A1", musicbrainz_id="r1")
        )
        await tracks.insert_if_absent(_track(album.id, "Something", 7, "A2"))
        await tracks.insert_if_absent(_track(album.id, "Her Majesty", 2, None))
        session.add(TrackRankingModel(album_id=album.id, track_id=plain.id, user_id="u", rank=1))
        await session.flush()

        result = await service.dedupe_and_renumber(album.id)

        assert result.deleted == 1
        assert result.remaining == 3
        remaining = await tracks.list_by_album(album.id)
        assert [(t.track_number, t.title) for t in remaining] == [
            (1, "Come Together"),
            (2, "Something"),
            (3, "Her Majesty"),
        ]
        assert remaining[0].id == richer.id

        ranking = await session.scalar(
            select(TrackRankingModel).execution_options(populate_existing=True)
        )
        assert ranking.track_id == richer.id
        assert (await AlbumRepository(session).get_by_id(album.id)).total_tracks == 3

    async def test_clean_album_is_left_alone(
        self, service: TrackMaintenanceService, session: AsyncSession, album: CanonicalAlbum
    ) -> None:
        tracks = TrackRepository(session)
        await tracks.insert_if_absent(_track(album.id, "One", 1, "1"))
        await tracks.insert_if_absent(_track(album.id, "Two", 2, "2"))

        result = await service.dedupe_and_renumber(album.id)

        assert result.deleted == 0
        assert result.renumbered == 0

    async def test_normalize_positions_is_idempotent(
        self, service: TrackMaintenanceService, session: AsyncSession, album: CanonicalAlbum
    ) -> None:
        tracks = TrackRepository(session)
        await tracks.insert_if_absent(_track(album.id, "Late", 1, "Side B - 3"))
        await tracks.insert_if_absent(_track(album.id, "Early", 2, "a01"))
        await tracks.insert_if_absent(_track(album.id, "Clean", 3, "A2"))

        assert await service.normalize_positions(album.id) == 2
        assert await service.normalize_positions() == 0

        stored = await tracks.list_by_album(album.id)
        assert [(t.track_number, t.position) for t in stored] == [(1, "A1"), (2, "A2"), (3, "B3")]
