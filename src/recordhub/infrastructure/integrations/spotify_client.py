"""Spotify Web API client (client-credentials flow)."""

import logging
import time
from typing import Any, cast

import httpx

from recordhub.config.settings import SpotifySettings
from recordhub.domain.exceptions import ConfigurationError, SourceUnavailableError
from recordhub.infrastructure.integrations.http_base import RateLimitedClient
from recordhub.infrastructure.rate_limiter import RateLimiter, get_spotify_limiter

logger = logging.getLogger(__name__)


class SpotifyClient(RateLimitedClient):
    """HTTP client for Spotify catalog lookups.

    Catalog reads don't need a user, so we use the client-credentials grant and cache the
    app token until shortly before it expires.
    """

    SOURCE_NAME = "spotify"
    TOKEN_EXPIRY_MARGIN = 60.0

    def __init__(self, settings: SpotifySettings, limiter: RateLimiter | None = None) -> None:
        super().__init__(limiter or get_spotify_limiter(settings.requests_per_second))
        self.settings = settings
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.settings.base_url, timeout=self.settings.timeout)

    # Hey future me, don't log the token or the client secret! The token response only has
    # access_token + expires_in, no refresh token for this grant - we just ask again.
    async def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        if not self.settings.is_configured:
            raise ConfigurationError("Spotify client_id/client_secret are not configured")

        client = await self._get_client()
        try:
            response = await client.post(
                self.settings.token_url,
                data={"grant_type": "client_credentials"},
                auth=(self.settings.client_id, self.settings.client_secret),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SourceUnavailableError(self.SOURCE_NAME, f"token request failed: {e}") from e

        payload = response.json()
        self._access_token = cast(str, payload["access_token"])
        expires_in = float(payload.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(expires_in - self.TOKEN_EXPIRY_MARGIN, 0)
        return self._access_token

    async def _rate_limited_request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        token = await self._get_access_token()
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {token}"
        return await super()._rate_limited_request(method, url, headers=headers, **kwargs)

    async def search_albums(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/search", params={"q": query, "type": "album", "limit": min(limit, 50)}
        )
        return cast(list[dict[str, Any]], ((data or {}).get("albums") or {}).get("items", []))

    # Listen up, /albums/{id} embeds only the first 50 tracks. Longer albums (box sets,
    # compilations) page via tracks.next, which is an absolute URL.
    async def get_album(self, album_id: str) -> dict[str, Any] | None:
        album = await self._get_json(f"/albums/{album_id}")
        if album is None:
            return None

        tracks = album.get("tracks") or {}
        items = list(tracks.get("items") or [])
        next_url = tracks.get("next")
        while next_url:
            page = await self._get_json(next_url)
            if not page:
                break
            items.extend(page.get("items") or [])
            next_url = page.get("next")

        album["tracks"] = {**tracks, "items": items, "next": None}
        return cast(dict[str, Any], album)

    async def get_artist(self, artist_id: str) -> dict[str, Any] | None:
        data = await self._get_json(f"/artists/{artist_id}")
        return cast(dict[str, Any] | None, data)

    async def get_artist_albums(self, artist_id: str, limit: int = 50) -> list[dict[str, Any]]:
        data = await self._get_json(
            f"/artists/{artist_id}/albums",
            params={"include_groups": "album,single", "limit": min(limit, 50)},
        )
        return cast(list[dict[str, Any]], (data or {}).get("items", []))

    async def search_artists(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/search", params={"q": query, "type": "artist", "limit": min(limit, 50)}
        )
        return cast(list[dict[str, Any]], ((data or {}).get("artists") or {}).get("items", []))
