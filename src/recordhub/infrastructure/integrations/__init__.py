"""HTTP clients for external catalogs."""

from recordhub.infrastructure.integrations.discogs_client import DiscogsClient
from recordhub.infrastructure.integrations.musicbrainz_client import MusicBrainzClient
from recordhub.infrastructure.integrations.spotify_client import SpotifyClient

__all__ = ["DiscogsClient", "MusicBrainzClient", "SpotifyClient"]
