"""Tests for the Spotify client-credentials client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from recordhub.config.settings import SpotifySettings
from recordhub.domain.exceptions import ConfigurationError
from recordhub.infrastructure.integrations.spotify_client import SpotifyClient
from recordhub.infrastructure.rate_limiter import RateLimiter


def _response(payload: object, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.headers = {}
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response


@pytest.fixture
def http_client() -> MagicMock:
    client = MagicMock()
    client.post = AsyncMock(return_value=_response({"access_token": "tok", "expires_in": 3600}))
    client.request = AsyncMock(return_value=_response({"id": "alb", "tracks": {"items": []}}))
    return client


@pytest.fixture
def spotify_client(http_client: MagicMock) -> SpotifyClient:
    client = SpotifyClient(
        SpotifySettings(client_id="id", client_secret="secret"),
        limiter=RateLimiter.for_spotify(),
    )
    client._client = http_client
    return client


class TestSpotifyClient:
    async def test_unconfigured_client_raises_configuration_error(self) -> None:
        client = SpotifyClient(SpotifySettings(), limiter=RateLimiter.for_spotify())

        with pytest.raises(ConfigurationError):
            await client.get_album("alb")

    async def test_token_is_cached_between_requests(
        self, spotify_client: SpotifyClient, http_client: MagicMock
    ) -> None:
        await spotify_client.get_artist("a1")
        await spotify_client.get_artist("a2")

        http_client.post.assert_awaited_once()
        headers = http_client.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer tok"

    async def test_get_album_follows_track_pages(
        self, spotify_client: SpotifyClient, http_client: MagicMock
    ) -> None:
        first_page = {
            "id": "alb",
            "tracks": {"items": [{"id": "t1"}], "next": "https://api.spotify.com/v1/next"},
        }
        second_page = {"items": [{"id": "t2"}], "next": None}
        http_client.request = AsyncMock(side_effect=[_response(first_page), _response(second_page)])

        album = await spotify_client.get_album("alb")

        assert [item["id"] for item in album["tracks"]["items"]] == ["t1", "t2"]
        assert album["tracks"]["next"] is None
