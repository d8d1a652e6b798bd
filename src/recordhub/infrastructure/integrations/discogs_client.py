"""Discogs HTTP client with rate limiting."""

import logging
from typing import Any, cast

import httpx

from recordhub.config.settings import DiscogsSettings
from recordhub.infrastructure.integrations.http_base import RateLimitedClient
from recordhub.infrastructure.rate_limiter import RateLimiter, get_discogs_limiter

logger = logging.getLogger(__name__)


class DiscogsClient(RateLimitedClient):
    """HTTP client for the Discogs database API."""

    SOURCE_NAME = "discogs"

    def __init__(self, settings: DiscogsSettings, limiter: RateLimiter | None = None) -> None:
        super().__init__(limiter or get_discogs_limiter(settings.requests_per_second))
        self.settings = settings

    # Yo, Discogs works anonymously but search needs a token and the anonymous rate limit is
    # much lower. The token goes into the Authorization header as "Discogs token=...".
    def _build_client(self) -> httpx.AsyncClient:
        headers = {"User-Agent": self.settings.user_agent, "Accept": "application/json"}
        if self.settings.token:
            headers["Authorization"] = f"Discogs token={self.settings.token}"
        return httpx.AsyncClient(
            base_url=self.settings.base_url,
            headers=headers,
            timeout=self.settings.timeout,
        )

    async def search_releases(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/database/search", params={"q": query, "type": "release", "per_page": limit}
        )
        return cast(list[dict[str, Any]], (data or {}).get("results", []))

    async def get_release(self, release_id: str) -> dict[str, Any] | None:
        data = await self._get_json(f"/releases/{release_id}")
        return cast(dict[str, Any] | None, data)

    async def get_artist(self, artist_id: str) -> dict[str, Any] | None:
        data = await self._get_json(f"/artists/{artist_id}")
        return cast(dict[str, Any] | None, data)

    async def get_artist_releases(self, artist_id: str, limit: int = 50) -> list[dict[str, Any]]:
        data = await self._get_json(
            f"/artists/{artist_id}/releases",
            params={"sort": "year", "sort_order": "asc", "per_page": limit},
        )
        return cast(list[dict[str, Any]], (data or {}).get("releases", []))

    async def search_artists(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/database/search", params={"q": query, "type": "artist", "per_page": limit}
        )
        return cast(list[dict[str, Any]], (data or {}).get("results", []))
