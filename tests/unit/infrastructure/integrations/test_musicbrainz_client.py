"""Tests for MusicBrainz client implementation."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from recordhub.config.settings import MusicBrainzSettings
from recordhub.domain.exceptions import SourceUnavailableError
from recordhub.infrastructure.integrations.musicbrainz_client import MusicBrainzClient
from recordhub.infrastructure.rate_limiter import RateLimiter


def _response(status_code: int = 200, payload: object = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.headers = {}
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response


@pytest.fixture
def musicbrainz_settings() -> MusicBrainzSettings:
    """Create MusicBrainz settings for testing."""
    return MusicBrainzSettings(
        app_name="TestApp",
        app_version="1.0.0",
        contact="test@example.com",
    )


@pytest.fixture
def musicbrainz_client(musicbrainz_settings: MusicBrainzSettings) -> MusicBrainzClient:
    """Create MusicBrainz client for testing."""
    return MusicBrainzClient(musicbrainz_settings, limiter=RateLimiter.for_musicbrainz())


class TestMusicBrainzClientInit:
    """Test MusicBrainz client initialization."""

    def test_user_agent_names_app_and_contact(
        self, musicbrainz_client: MusicBrainzClient
    ) -> None:
        http_client = musicbrainz_client._build_client()
        assert http_client.headers["User-Agent"] == "TestApp/1.0.0 ( test@example.com )"


class TestMusicBrainzClientRelease:
    """Test MusicBrainz release lookups."""

    async def test_get_release_found(
        self, musicbrainz_client: MusicBrainzClient, mocker: MagicMock
    ) -> None:
        mock_request = mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            return_value=_response(payload={"id": "rel-1", "title": "Blue Train"}),
        )

        result = await musicbrainz_client.get_release("rel-1")

        assert result == {"id": "rel-1", "title": "Blue Train"}
        method, url = mock_request.call_args.args
        assert method == "GET"
        assert url == "/release/rel-1"
        assert "recordings" in mock_request.call_args.kwargs["params"]["inc"]

    async def test_get_release_not_found_returns_none(
        self, musicbrainz_client: MusicBrainzClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            musicbrainz_client, "_rate_limited_request", return_value=_response(404)
        )

        assert await musicbrainz_client.get_release("missing") is None

    async def test_server_error_raises_source_unavailable(
        self, musicbrainz_client: MusicBrainzClient, mocker: MagicMock
    ) -> None:
        request = httpx.Request("GET", "https://musicbrainz.org/ws/2/release/x")
        mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            return_value=httpx.Response(503, request=request),
        )

        with pytest.raises(SourceUnavailableError) as exc_info:
            await musicbrainz_client.get_release("x")

        assert exc_info.value.status_code == 503
        assert exc_info.value.source == "musicbrainz"

    async def test_transport_error_raises_source_unavailable(
        self, musicbrainz_client: MusicBrainzClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            side_effect=httpx.ConnectError("connection refused"),
        )

        with pytest.raises(SourceUnavailableError):
            await musicbrainz_client.get_release("x")

    async def test_rate_limit_backs_off_and_retries_once(
        self, musicbrainz_client: MusicBrainzClient, mocker: MagicMock
    ) -> None:
        limited = _response(429)
        limited.headers = {"Retry-After": "2"}
        mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            side_effect=[limited, _response(payload={"id": "rel-1"})],
        )
        backoff = mocker.patch.object(
            musicbrainz_client._limiter, "handle_rate_limit_response", new=AsyncMock()
        )

        result = await musicbrainz_client.get_release("rel-1")

        assert result == {"id": "rel-1"}
        backoff.assert_awaited_once_with(2.0)

    async def test_release_group_lookup_queries_rgid(
        self, musicbrainz_client: MusicBrainzClient, mocker: MagicMock
    ) -> None:
        mock_request = mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            return_value=_response(payload={"releases": [{"id": "r1"}, {"id": "r2"}]}),
        )

        releases = await musicbrainz_client.get_releases_by_release_group("rg-1")

        assert [release["id"] for release in releases] == ["r1", "r2"]
        assert mock_request.call_args.kwargs["params"]["query"] == "rgid:rg-1"


class TestMusicBrainzCoverArt:
    """Test Cover Art Archive lookups."""

    async def test_prefers_front_image_large_thumbnail(
        self, musicbrainz_client: MusicBrainzClient, mocker: MagicMock
    ) -> None:
        payload = {
            "images": [
                {"front": False, "image": "http://caa/back.jpg", "thumbnails": {}},
                {
                    "front": True,
                    "image": "http://caa/front.jpg",
                    "thumbnails": {"large": "http://caa/front-500.jpg"},
                },
            ]
        }
        mocker.patch.object(
            musicbrainz_client, "_rate_limited_request", return_value=_response(payload=payload)
        )

        assert await musicbrainz_client.get_cover_art_url("rel-1") == "http://caa/front-500.jpg"

    async def test_no_art_returns_none(
        self, musicbrainz_client: MusicBrainzClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            musicbrainz_client, "_rate_limited_request", return_value=_response(404)
        )

        assert await musicbrainz_client.get_cover_art_url("rel-1") is None
