"""Tests for the Spotify metadata source mapping."""

from unittest.mock import AsyncMock

from recordhub.application.sources.spotify_source import SpotifySource, extract_media
from recordhub.infrastructure.integrations.spotify_client import SpotifyClient


def _item(track_id: str, name: str, track_number: int, disc_number: int = 1) -> dict:
    return {
        "id": track_id,
        "name": name,
        "track_number": track_number,
        "disc_number": disc_number,
        "duration_ms": 1000,
        "uri": f"spotify:track:{track_id}",
    }


class TestExtractMedia:
    def test_single_disc_keeps_plain_numbers(self) -> None:
        album = {"tracks": {"items": [_item("b", "Two", 2), _item("a", "One", 1)]}}

        media = extract_media(album)

        assert len(media) == 1
        assert [(t.position, t.title) for t in media[0].tracks] == [("1", "One"), ("2", "Two")]
        assert media[0].tracks[0].uri == "spotify:track:a"

    def test_multi_disc_uses_disc_dot_track(self) -> None:
        album = {
            "tracks": {
                "items": [_item("c", "Three", 1, disc_number=2), _item("a", "One", 1)],
            }
        }

        media = extract_media(album)

        assert [[t.position for t in medium.tracks] for medium in media] == [["1.1"], ["2.1"]]


class TestSpotifySource:
    async def test_get_release_maps_dto(self) -> None:
        client = AsyncMock(spec=SpotifyClient)
        client.get_album.return_value = {
            "id": "4LH4d3cOWNNsVw41Gqt2kv",
            "name": "The Dark Side of the Moon",
            "artists": [{"name": "Pink Floyd"}],
            "release_date": "1973-03-01",
            "images": [{"url": "http://img/large"}, {"url": "http://img/small"}],
            "uri": "spotify:album:4LH4d3cOWNNsVw41Gqt2kv",
            "total_tracks": 1,
            "tracks": {"items": [_item("t1", "Speak to Me", 1)]},
        }

        release = await SpotifySource(client).get_release("4LH4d3cOWNNsVw41Gqt2kv")

        assert release is not None
        assert release.artist == "Pink Floyd"
        assert release.cover_art_url == "http://img/large"
        assert release.tracks[0].id == "t1"

    async def test_missing_album_returns_none(self) -> None:
        client = AsyncMock(spec=SpotifyClient)
        client.get_album.return_value = None

        assert await SpotifySource(client).get_release("nope") is None
