"""Tests for the metadata source registry."""

import pytest

from recordhub.application.sources import build_default_registry
from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.config import Settings, SpotifySettings
from recordhub.domain.entities import Source
from recordhub.domain.exceptions import ConfigurationError
from recordhub.domain.ports import IMetadataSource


class TestMetadataSourceRegistry:
    def test_priority_order_and_fallbacks(self, sources: MetadataSourceRegistry) -> None:
        assert [a.source for a in sources.in_priority_order()] == [
            Source.MUSICBRAINZ,
            Source.DISCOGS,
            Source.SPOTIFY,
        ]
        assert [a.source for a in sources.fallbacks_for(Source.DISCOGS)] == [
            Source.MUSICBRAINZ,
            Source.SPOTIFY,
        ]

    def test_get_unregistered_source_raises(self, musicbrainz: IMetadataSource) -> None:
        registry = MetadataSourceRegistry([musicbrainz])

        assert Source.MUSICBRAINZ in registry
        assert Source.SPOTIFY not in registry
        assert registry.find(Source.SPOTIFY) is None
        with pytest.raises(ConfigurationError):
            registry.get(Source.SPOTIFY)

    async def test_close_closes_every_adapter(self, sources: MetadataSourceRegistry) -> None:
        await sources.close()
        assert all(adapter.closed for adapter in sources.in_priority_order())


class TestBuildDefaultRegistry:
    def test_spotify_skipped_without_credentials(self) -> None:
        registry = build_default_registry(Settings())
        assert Source.SPOTIFY not in registry
        assert Source.MUSICBRAINZ in registry
        assert Source.DISCOGS in registry

    def test_spotify_registered_with_credentials(self) -> None:
        settings = Settings(spotify=SpotifySettings(client_id="id", client_secret="secret"))
        assert Source.SPOTIFY in build_default_registry(settings)
