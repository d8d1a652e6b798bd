"""Tests for the shared rate-limited client base."""

import httpx
import pytest

from recordhub.infrastructure.integrations.http_base import RateLimitedClient
from recordhub.infrastructure.rate_limiter import RateLimiter


class TestRateLimitedClient:
    def test_base_cannot_be_instantiated(self) -> None:
        with pytest.raises(TypeError):
            RateLimitedClient(RateLimiter())  # type: ignore[abstract]

    async def test_subclass_client_is_built_once(self) -> None:
        class EchoClient(RateLimitedClient):
            SOURCE_NAME = "echo"

            def _build_client(self) -> httpx.AsyncClient:
                return httpx.AsyncClient(base_url="http://echo.invalid")

        client = EchoClient(RateLimiter())

        first = await client._get_client()
        assert await client._get_client() is first

        await client.close()
