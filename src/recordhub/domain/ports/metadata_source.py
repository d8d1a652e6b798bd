"""Metadata source port.

Hey future me - this is the capability set the indexer is parameterized over. One adapter per
external catalog implements it (MusicBrainz, Discogs, Spotify). The indexer NEVER branches on
the source name to decide how to read a release, it asks the adapter.

Failure contract:
- "no such id" -> return None (indexer turns it into NotFoundUpstreamError)
- network / rate limit / HTTP errors -> raise SourceUnavailableError
"""

from abc import ABC, abstractmethod
from typing import ClassVar

from recordhub.domain.dtos import ArtistDTO, ArtistSummaryDTO, ReleaseDTO, ReleaseSummaryDTO
from recordhub.domain.entities import Source


class IMetadataSource(ABC):
    """Read-only access to one external music catalog."""

    source: ClassVar[Source]

    @abstractmethod
    async def search_releases(self, query: str, limit: int = 10) -> list[ReleaseSummaryDTO]:
        """Search releases by free text (usually "artist title")."""
        pass

    @abstractmethod
    async def get_release(self, release_id: str) -> ReleaseDTO | None:
        """Fetch a release with its full track media, None if the source has no such id."""
        pass

    @abstractmethod
    async def get_artist(self, artist_id: str) -> ArtistDTO | None:
        """Fetch an artist, None if the source has no such id."""
        pass

    @abstractmethod
    async def search_artists(self, query: str, limit: int = 10) -> list[ArtistSummaryDTO]:
        """Search artists by name."""
        pass

    async def get_cover_art(self, release_id: str) -> str | None:
        """Native cover art lookup for a release. Sources without one return None."""
        return None

    async def close(self) -> None:
        """Release network resources."""
        return None
