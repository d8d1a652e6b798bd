"""Shared fixtures: in-memory catalog database and fake metadata sources."""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.config import DatabaseSettings, ReindexerSettings, Settings
from recordhub.domain.dtos import (
    ArtistDTO,
    ArtistSummaryDTO,
    MediumDTO,
    ReleaseDTO,
    ReleaseSummaryDTO,
    TrackDTO,
)
from recordhub.domain.entities import Source
from recordhub.domain.exceptions import SourceUnavailableError
from recordhub.domain.ports import IMetadataSource
from recordhub.infrastructure.persistence import Database


# Hey future me - the fakes answer from plain dicts the tests fill in. Flip `unavailable` to
# simulate an outage: every call then raises SourceUnavailableError like the real clients do.
class FakeSource(IMetadataSource):
    """In-memory IMetadataSource."""

    def __init__(self) -> None:
        self.releases: dict[str, ReleaseDTO] = {}
        self.artists: dict[str, ArtistDTO] = {}
        self.release_hits: list[ReleaseSummaryDTO] = []
        self.artist_hits: list[ArtistSummaryDTO] = []
        self.covers: dict[str, str] = {}
        self.unavailable = False
        self.release_calls: list[str] = []
        self.closed = False

    def _check(self) -> None:
        if self.unavailable:
            raise SourceUnavailableError(self.source.value, "simulated outage")

    def add_release(
        self,
        release_id: str,
        title: str,
        artist: str,
        tracks: list[tuple[Any, ...]] | None = None,
        **kwargs: Any,
    ) -> ReleaseDTO:
        """Register a release. tracks are (title, position) or (title, position, track_id)."""
        track_dtos = []
        for entry in tracks or []:
            track_title, position, *rest = entry
            track_dtos.append(
                TrackDTO(title=track_title, position=position, id=rest[0] if rest else None)
            )
        release = ReleaseDTO(
            id=release_id,
            title=title,
            artist=artist,
            source=self.source,
            media=[MediumDTO(tracks=track_dtos)],
            total_tracks=len(track_dtos),
            **kwargs,
        )
        self.releases[release_id] = release
        return release

    def add_artist(self, artist_id: str, name: str, **kwargs: Any) -> ArtistDTO:
        artist = ArtistDTO(id=artist_id, name=name, source=self.source, **kwargs)
        self.artists[artist_id] = artist
        return artist

    async def search_releases(self, query: str, limit: int = 10) -> list[ReleaseSummaryDTO]:
        self._check()
        return self.release_hits[:limit]

    async def get_release(self, release_id: str) -> ReleaseDTO | None:
        self._check()
        self.release_calls.append(release_id)
        return self.releases.get(release_id)

    async def get_artist(self, artist_id: str) -> ArtistDTO | None:
        self._check()
        return self.artists.get(artist_id)

    async def search_artists(self, query: str, limit: int = 10) -> list[ArtistSummaryDTO]:
        self._check()
        return self.artist_hits[:limit]

    async def get_cover_art(self, release_id: str) -> str | None:
        self._check()
        return self.covers.get(release_id)

    async def close(self) -> None:
        self.closed = True


class FakeMusicBrainz(FakeSource):
    source = Source.MUSICBRAINZ


class FakeDiscogs(FakeSource):
    source = Source.DISCOGS


class FakeSpotify(FakeSource):
    source = Source.SPOTIFY


@pytest.fixture
def settings() -> Settings:
    """Settings with an in-memory database and the worker off."""
    return Settings(
        database=DatabaseSettings(url="sqlite+aiosqlite://"),
        reindexer=ReindexerSettings(enabled=False, max_retries=3, retry_interval_seconds=0),
    )


@pytest.fixture
def reindexer_settings(settings: Settings) -> ReindexerSettings:
    return settings.reindexer


@pytest.fixture
async def db(settings: Settings) -> AsyncGenerator[Database, None]:
    database = Database(settings)
    await database.create_tables()
    yield database
    await database.close()


@pytest.fixture
async def session(db: Database) -> AsyncGenerator[AsyncSession, None]:
    async with db.session_factory() as session:
        yield session


@pytest.fixture
def musicbrainz() -> FakeMusicBrainz:
    return FakeMusicBrainz()


@pytest.fixture
def discogs() -> FakeDiscogs:
    return FakeDiscogs()


@pytest.fixture
def spotify() -> FakeSpotify:
    return FakeSpotify()


@pytest.fixture
def sources(
    musicbrainz: FakeMusicBrainz, discogs: FakeDiscogs, spotify: FakeSpotify
) -> MetadataSourceRegistry:
    return MetadataSourceRegistry([musicbrainz, discogs, spotify])
