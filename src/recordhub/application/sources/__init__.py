"""Metadata sources for the catalog indexer.

Hey future me - THIS IS THE ABSTRACTION LAYER over the three external catalogs!
Each adapter implements IMetadataSource and owns its source's mapping rules
(MusicBrainz media numbering, Discogs free-text positions, Spotify disc/track numbers).

Usage:
    from recordhub.application.sources import build_default_registry

    registry = build_default_registry(settings)
    adapter = registry.get(Source.DISCOGS)
    release = await adapter.get_release("12345")
"""

import logging

from recordhub.application.sources.discogs_source import DiscogsSource
from recordhub.application.sources.musicbrainz_source import MusicBrainzSource
from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.application.sources.spotify_source import SpotifySource
from recordhub.config import Settings
from recordhub.infrastructure.integrations import DiscogsClient, MusicBrainzClient, SpotifyClient

logger = logging.getLogger(__name__)


def build_default_registry(settings: Settings) -> MetadataSourceRegistry:
    """Registry with every source the settings allow.

    Spotify is skipped without client credentials, the other two work anonymously.
    """
    registry = MetadataSourceRegistry()
    registry.register(MusicBrainzSource(MusicBrainzClient(settings.musicbrainz)))
    registry.register(DiscogsSource(DiscogsClient(settings.discogs)))
    if settings.spotify.is_configured:
        registry.register(SpotifySource(SpotifyClient(settings.spotify)))
    else:
        logger.info("Spotify credentials not configured, Spotify source disabled")
    return registry


__all__ = [
    "DiscogsSource",
    "MetadataSourceRegistry",
    "MusicBrainzSource",
    "SpotifySource",
    "build_default_registry",
]
