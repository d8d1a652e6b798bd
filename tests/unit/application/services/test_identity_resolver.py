"""Tests for IdentityResolver (exact lookup, fuzzy match, linking)."""

import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.application.services.identity_resolver import IdentityResolver
from recordhub.config import ReindexerSettings
from recordhub.domain.entities import CanonicalAlbum, CanonicalArtist, ExternalIds, Source
from recordhub.infrastructure.persistence.repositories import AlbumRepository, ArtistRepository


@pytest.fixture
def resolver(session: AsyncSession, reindexer_settings: ReindexerSettings) -> IdentityResolver:
    return IdentityResolver(
        AlbumRepository(session), ArtistRepository(session), reindexer_settings
    )


async def _store_album(session: AsyncSession, title: str, artist: str, **ids: str) -> str:
    source = next(s for s in Source if s.id_field in ids)
    album, _ = await AlbumRepository(session).insert_if_absent(
        CanonicalAlbum(
            id=str(uuid.uuid4()), title=title, artist=artist, external_ids=ExternalIds(**ids)
        ),
        source,
    )
    return album.id


class TestAlbumResolution:
    async def test_exact_owner_wins(
        self, resolver: IdentityResolver, session: AsyncSession
    ) -> None:
        album_id = await _store_album(session, "Blue", "Joni Mitchell", discogs_id="1")

        candidate = SimpleNamespace(title="Blue", artist="Joni Mitchell")
        assert await resolver.ensure_source_ids("1", Source.DISCOGS, candidate) == album_id

    async def test_fuzzy_match_links_the_id(
        self, resolver: IdentityResolver, session: AsyncSession
    ) -> None:
        album_id = await _store_album(session, "Blue", "Joni Mitchell", discogs_id="1")

        candidate = SimpleNamespace(title="Blue.", artist="joni mitchell")
        matched = await resolver.ensure_source_ids("sp-1", Source.SPOTIFY, candidate)

        assert matched == album_id
        assert await resolver.resolve_id_to_canonical_id("sp-1") == album_id

    async def test_below_threshold_returns_none(
        self, resolver: IdentityResolver, session: AsyncSession
    ) -> None:
        await _store_album(session, "Blue", "Joni Mitchell", discogs_id="1")

        candidate = SimpleNamespace(title="Court and Spark", artist="Joni Mitchell")
        assert await resolver.ensure_source_ids("sp-1", Source.SPOTIFY, candidate) is None

    async def test_album_with_same_source_id_is_not_a_match(
        self, resolver: IdentityResolver, session: AsyncSession
    ) -> None:
        await _store_album(session, "Blue", "Joni Mitchell", discogs_id="1")

        # A second Discogs pressing can't be linked onto an album that already has a Discogs id
        candidate = SimpleNamespace(title="Blue", artist="Joni Mitchell")
        assert await resolver.find_matching_album(candidate, source=Source.DISCOGS) is None
        assert await resolver.find_matching_album(candidate) is not None

    async def test_best_score_wins(
        self, resolver: IdentityResolver, session: AsyncSession
    ) -> None:
        await _store_album(session, "Abbey Road (Remaster)", "The Beatles", discogs_id="1")
        exact_id = await _store_album(session, "Abbey Road", "The Beatles", discogs_id="2")

        candidate = SimpleNamespace(title="Abbey Road", artist="The Beatles")
        assert await resolver.find_matching_album(candidate, threshold=0.5) == exact_id


class TestArtistResolution:
    async def test_fuzzy_artist_link(
        self, resolver: IdentityResolver, session: AsyncSession
    ) -> None:
        artist, _ = await ArtistRepository(session).insert_if_absent(
            CanonicalArtist(
                id=str(uuid.uuid4()), name="Björk", external_ids=ExternalIds(discogs_id="5")
            ),
            Source.DISCOGS,
        )

        matched = await resolver.ensure_artist_source_ids("mb-bjork", Source.MUSICBRAINZ, "bjórk")
        assert matched is None

        matched = await resolver.ensure_artist_source_ids("mb-bjork", Source.MUSICBRAINZ, "BJÖRK")
        assert matched == artist.id
        assert (await resolver.find_artist_by_source_id("mb-bjork")).id == artist.id
