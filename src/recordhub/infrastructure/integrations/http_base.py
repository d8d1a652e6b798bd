"""Shared plumbing for the catalog HTTP clients."""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from recordhub.domain.exceptions import SourceUnavailableError
from recordhub.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RateLimitedClient(ABC):
    """Lazy httpx client, rate limiting and error translation.

    Subclasses set SOURCE_NAME and implement _build_client(). Every request goes through
    _rate_limited_request(), which is also the seam tests patch.

    Error contract for _get_json():
        404          -> None ("no such id" is a normal answer)
        429          -> adaptive backoff, then one more try
        other errors -> SourceUnavailableError
    """

    SOURCE_NAME = "http"
    MAX_RATE_LIMIT_RETRIES = 1

    def __init__(self, limiter: RateLimiter) -> None:
        self._limiter = limiter
        self._client: httpx.AsyncClient | None = None

    @abstractmethod
    def _build_client(self) -> httpx.AsyncClient:
        """Configured httpx client (base url, headers, timeout) for this source."""

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _rate_limited_request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Make a rate-limited request.

        Raises:
            httpx.HTTPError: If the transport fails
        """
        async with self._limiter:
            client = await self._get_client()
            return await client.request(method, url, **kwargs)

    async def _get_json(self, url: str, **kwargs: Any) -> Any | None:
        """GET and decode JSON, translating failures.

        Returns:
            Decoded JSON body or None for 404
        """
        attempts = 0
        while True:
            try:
                response = await self._rate_limited_request("GET", url, **kwargs)
            except httpx.HTTPError as e:
                raise SourceUnavailableError(self.SOURCE_NAME, str(e)) from e

            if response.status_code == 404:
                return None

            if response.status_code == 429 and attempts < self.MAX_RATE_LIMIT_RETRIES:
                attempts += 1
                retry_after = response.headers.get("Retry-After")
                await self._limiter.handle_rate_limit_response(
                    float(retry_after) if retry_after and retry_after.isdigit() else None
                )
                continue

            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise SourceUnavailableError(
                    self.SOURCE_NAME,
                    f"HTTP {e.response.status_code} for {url}",
                    status_code=e.response.status_code,
                ) from e

            try:
                return response.json()
            except ValueError as e:
                raise SourceUnavailableError(self.SOURCE_NAME, f"invalid JSON from {url}") from e
