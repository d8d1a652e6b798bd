"""MusicBrainz HTTP client with rate limiting."""

import logging
from typing import Any, cast

import httpx

from recordhub.config.settings import MusicBrainzSettings
from recordhub.infrastructure.integrations.http_base import RateLimitedClient
from recordhub.infrastructure.rate_limiter import RateLimiter, get_musicbrainz_limiter

logger = logging.getLogger(__name__)


class MusicBrainzClient(RateLimitedClient):
    """HTTP client for the MusicBrainz web service (JSON)."""

    SOURCE_NAME = "musicbrainz"
    RELEASE_INCLUDES = "artist-credits+recordings+release-groups+media+genres"
    ARTIST_INCLUDES = "url-rels+release-groups+genres"

    def __init__(self, settings: MusicBrainzSettings, limiter: RateLimiter | None = None) -> None:
        super().__init__(limiter or get_musicbrainz_limiter(settings.requests_per_second))
        self.settings = settings

    # Listen future me, MusicBrainz REQUIRES a User-Agent with app name, version AND contact,
    # formatted "AppName/Version ( contact )". Without it they answer 403.
    def _build_client(self) -> httpx.AsyncClient:
        user_agent = (
            f"{self.settings.app_name}/{self.settings.app_version} ( {self.settings.contact} )"
        )
        return httpx.AsyncClient(
            base_url=self.settings.base_url,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            timeout=self.settings.timeout,
            follow_redirects=True,
        )

    async def search_releases(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/release", params={"query": query, "limit": min(limit, 100), "fmt": "json"}
        )
        return cast(list[dict[str, Any]], (data or {}).get("releases", []))

    async def get_release(self, mbid: str) -> dict[str, Any] | None:
        """Lookup a release with recordings and release group.

        Returns:
            Release JSON or None if MusicBrainz has no release with this id
        """
        data = await self._get_json(
            f"/release/{mbid}", params={"inc": self.RELEASE_INCLUDES, "fmt": "json"}
        )
        return cast(dict[str, Any] | None, data)

    async def get_releases_by_release_group(
        self, release_group_id: str, limit: int = 100
    ) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/release",
            params={"query": f"rgid:{release_group_id}", "limit": min(limit, 100), "fmt": "json"},
        )
        return cast(list[dict[str, Any]], (data or {}).get("releases", []))

    async def get_artist(self, mbid: str) -> dict[str, Any] | None:
        data = await self._get_json(
            f"/artist/{mbid}", params={"inc": self.ARTIST_INCLUDES, "fmt": "json"}
        )
        return cast(dict[str, Any] | None, data)

    async def search_artists(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        data = await self._get_json(
            "/artist", params={"query": query, "limit": min(limit, 100), "fmt": "json"}
        )
        return cast(list[dict[str, Any]], (data or {}).get("artists", []))

    # Hey future me, the Cover Art Archive is a separate host. httpx lets an absolute URL
    # override base_url so we reuse the same client (and the same MB rate limiter, CAA is
    # run by the same people). A release without art answers 404 -> None.
    async def get_cover_art_url(self, mbid: str) -> str | None:
        data = await self._get_json(f"{self.settings.cover_art_url}/release/{mbid}")
        if not data:
            return None
        images = data.get("images") or []
        front = next((image for image in images if image.get("front")), None)
        chosen = front or (images[0] if images else None)
        if not chosen:
            return None
        thumbnails = chosen.get("thumbnails") or {}
        return cast(str | None, thumbnails.get("large") or chosen.get("image"))
