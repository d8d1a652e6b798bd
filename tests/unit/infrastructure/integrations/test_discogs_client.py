"""Tests for Discogs client implementation."""

from unittest.mock import MagicMock

import pytest

from recordhub.config.settings import DiscogsSettings
from recordhub.infrastructure.integrations.discogs_client import DiscogsClient
from recordhub.infrastructure.rate_limiter import RateLimiter


def _response(status_code: int = 200, payload: object = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.headers = {}
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response


@pytest.fixture
def discogs_client() -> DiscogsClient:
    return DiscogsClient(DiscogsSettings(token="secret"), limiter=RateLimiter.for_discogs())


class TestDiscogsClient:
    def test_token_goes_into_authorization_header(self, discogs_client: DiscogsClient) -> None:
        http_client = discogs_client._build_client()
        assert http_client.headers["Authorization"] == "Discogs token=secret"

    def test_anonymous_client_has_no_authorization(self) -> None:
        client = DiscogsClient(DiscogsSettings(), limiter=RateLimiter.for_discogs())
        assert "Authorization" not in client._build_client().headers

    async def test_get_release(self, discogs_client: DiscogsClient, mocker: MagicMock) -> None:
        mock_request = mocker.patch.object(
            discogs_client,
            "_rate_limited_request",
            return_value=_response(payload={"id": 42, "title": "Unknown Pleasures"}),
        )

        result = await discogs_client.get_release("42")

        assert result["title"] == "Unknown Pleasures"
        assert mock_request.call_args.args == ("GET", "/releases/42")

    async def test_get_release_not_found(
        self, discogs_client: DiscogsClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(discogs_client, "_rate_limited_request", return_value=_response(404))
        assert await discogs_client.get_release("42") is None

    async def test_search_releases_returns_results(
        self, discogs_client: DiscogsClient, mocker: MagicMock
    ) -> None:
        mock_request = mocker.patch.object(
            discogs_client,
            "_rate_limited_request",
            return_value=_response(payload={"results": [{"id": 1}, {"id": 2}]}),
        )

        results = await discogs_client.search_releases("joy division", limit=2)

        assert [result["id"] for result in results] == [1, 2]
        params = mock_request.call_args.kwargs["params"]
        assert params == {"q": "joy division", "type": "release", "per_page": 2}

    async def test_artist_releases_empty_on_404(
        self, discogs_client: DiscogsClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(discogs_client, "_rate_limited_request", return_value=_response(404))
        assert await discogs_client.get_artist_releases("7") == []
