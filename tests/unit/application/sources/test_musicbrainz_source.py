"""Tests for the MusicBrainz metadata source mapping."""

from unittest.mock import AsyncMock

import pytest

from recordhub.application.sources.musicbrainz_source import (
    MusicBrainzSource,
    extract_media,
    format_artist_credit,
    side_letter,
)
from recordhub.domain.entities import Source
from recordhub.infrastructure.integrations.musicbrainz_client import MusicBrainzClient


def _release(release_id: str = "rel-1", **overrides: object) -> dict:
    release = {
        "id": release_id,
        "title": "A Love Supreme",
        "date": "1965-01",
        "artist-credit": [{"name": "John Coltrane", "joinphrase": ""}],
        "release-group": {"primary-type": "Album"},
        "media": [
            {
                "position": 1,
                "track-count": 2,
                "tracks": [
                    {"id": "t1", "number": "A1", "title": "Acknowledgement", "length": 470000},
                    {"id": "t2", "number": "B1", "title": "Resolution", "length": 440000},
                ],
            }
        ],
    }
    release.update(overrides)
    return release


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock(spec=MusicBrainzClient)


@pytest.fixture
def source(client: AsyncMock) -> MusicBrainzSource:
    return MusicBrainzSource(client)


class TestExtractMedia:
    def test_uses_printed_numbers(self) -> None:
        media = extract_media(_release())

        assert [(t.position, t.title) for t in media[0].tracks] == [
            ("A1", "Acknowledgement"),
            ("B1", "Resolution"),
        ]
        assert media[0].tracks[0].duration_ms == 470000

    def test_empty_number_becomes_side_letter_and_index(self) -> None:
        release = _release(
            media=[
                {"tracks": [{"title": "One", "number": ""}, {"title": "Two"}]},
                {"tracks": [{"title": "Three", "number": None}]},
            ]
        )

        positions = [t.position for medium in extract_media(release) for t in medium.tracks]

        assert positions == ["A1", "A2", "B1"]

    def test_multi_disc_plain_numbers_get_medium_prefix(self) -> None:
        release = _release(
            media=[
                {"position": 1, "tracks": [{"title": "One", "number": "1"}]},
                {"position": 2, "tracks": [{"title": "Two", "number": "1"}]},
            ]
        )

        positions = [t.position for medium in extract_media(release) for t in medium.tracks]

        assert positions == ["1.1", "2.1"]

    def test_title_falls_back_to_recording(self) -> None:
        release = _release(
            media=[{"tracks": [{"number": "1", "recording": {"title": "Crescent", "length": 5}}]}]
        )

        track = extract_media(release)[0].tracks[0]
        assert track.title == "Crescent"
        assert track.duration_ms == 5

    def test_side_letter(self) -> None:
        assert side_letter(0) == "A"
        assert side_letter(25) == "Z"
        assert side_letter(26) == "27"


class TestFormatArtistCredit:
    def test_joins_with_joinphrases(self) -> None:
        credit = [
            {"name": "Duke Ellington", "joinphrase": " & "},
            {"artist": {"name": "John Coltrane"}},
        ]
        assert format_artist_credit(credit) == "Duke Ellington & John Coltrane"

    def test_empty(self) -> None:
        assert format_artist_credit(None) == ""


class TestMusicBrainzSource:
    async def test_get_release_maps_dto(self, source: MusicBrainzSource, client: AsyncMock) -> None:
        client.get_release.return_value = _release()

        release = await source.get_release("rel-1")

        assert release is not None
        assert release.source == Source.MUSICBRAINZ
        assert release.artist == "John Coltrane"
        assert release.genres == ["Album"]
        assert release.total_tracks == 2
        assert release.url == "https://musicbrainz.org/release/rel-1"

    async def test_release_group_id_falls_back_to_preferred_release(
        self, source: MusicBrainzSource, client: AsyncMock
    ) -> None:
        client.get_release.side_effect = [None, _release("official-early")]
        client.get_releases_by_release_group.return_value = [
            {"id": "bootleg", "status": "Bootleg", "date": "1960"},
            {"id": "official-late", "status": "Official", "date": "1999"},
            {"id": "official-early", "status": "Official", "date": "1965"},
        ]

        release = await source.get_release("rg-1")

        assert release is not None
        assert release.id == "official-early"
        assert client.get_release.await_args_list[-1].args == ("official-early",)

    async def test_unknown_id_returns_none(
        self, source: MusicBrainzSource, client: AsyncMock
    ) -> None:
        client.get_release.return_value = None
        client.get_releases_by_release_group.return_value = []

        assert await source.get_release("nope") is None

    async def test_get_artist_reads_image_relation_and_release_groups(
        self, source: MusicBrainzSource, client: AsyncMock
    ) -> None:
        client.get_artist.return_value = {
            "id": "art-1",
            "name": "John Coltrane",
            "genres": [{"name": "jazz"}],
            "relations": [
                {"type": "wikidata", "url": {"resource": "http://wikidata"}},
                {"type": "image", "url": {"resource": "http://img/coltrane.jpg"}},
            ],
            "release-groups": [{"id": "rg-1"}, {"id": "rg-2"}],
        }

        artist = await source.get_artist("art-1")

        assert artist is not None
        assert artist.image_url == "http://img/coltrane.jpg"
        assert artist.genres == ["jazz"]
        assert artist.release_ids == ["rg-1", "rg-2"]
