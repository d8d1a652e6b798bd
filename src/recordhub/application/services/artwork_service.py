"""Cover art and artist image lookup with cross-source fallback.

Hey future me - missing artwork must NEVER block album or artist creation! Every lookup here
is best effort: try the native source first, then search the other sources (priority order)
by artist + title, and if anything blows up we log it and return None.
"""

import logging

from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.domain.dtos import ArtistDTO, ReleaseDTO, ReleaseSummaryDTO
from recordhub.domain.ports import IMetadataSource
from recordhub.domain.value_objects.similarity import album_similarity, artist_similarity

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 5


class ArtworkService:
    """Finds cover art for releases and images for artists."""

    def __init__(self, sources: MetadataSourceRegistry, match_threshold: float = 0.85) -> None:
        self._sources = sources
        self._match_threshold = match_threshold

    async def find_album_cover(self, release: ReleaseDTO) -> str | None:
        """Cover art URL for a release, or None if no source has one."""
        if release.cover_art_url:
            return release.cover_art_url

        native = self._sources.find(release.source)
        if native is not None:
            try:
                url = await native.get_cover_art(release.id)
                if url:
                    return url
            except Exception as e:
                logger.warning(
                    f"Native cover art lookup failed for {release.source.value}:{release.id}: {e}"
                )

        query = f"{release.artist} {release.title}".strip()
        for fallback in self._sources.fallbacks_for(release.source):
            try:
                url = await self._cover_from_search(fallback, release, query)
            except Exception as e:
                logger.warning(
                    f"Cover art fallback via {fallback.source.value} failed for '{query}': {e}"
                )
                continue
            if url:
                logger.debug(f"Cover art for '{query}' found via {fallback.source.value}")
                return url
        return None

    async def _cover_from_search(
        self, fallback: IMetadataSource, release: ReleaseDTO, query: str
    ) -> str | None:
        hits = await fallback.search_releases(query, SEARCH_LIMIT)
        best = self._best_release_hit(release, hits)
        if best is None:
            return None
        if best.cover_art_url:
            return best.cover_art_url

        url = await fallback.get_cover_art(best.id)
        if url:
            return url
        detail = await fallback.get_release(best.id)
        return detail.cover_art_url if detail else None

    def _best_release_hit(
        self, release: ReleaseDTO, hits: list[ReleaseSummaryDTO]
    ) -> ReleaseSummaryDTO | None:
        best: ReleaseSummaryDTO | None = None
        best_score = 0.0
        for hit in hits:
            score = album_similarity(release, hit)
            if score >= self._match_threshold and score > best_score:
                best, best_score = hit, score
        return best

    async def find_artist_image(self, artist: ArtistDTO) -> str | None:
        """Image URL for an artist, or None."""
        if artist.image_url:
            return artist.image_url

        for fallback in self._sources.fallbacks_for(artist.source):
            try:
                url = await self._image_from_search(fallback, artist.name)
            except Exception as e:
                logger.warning(
                    f"Artist image fallback via {fallback.source.value} failed for "
                    f"'{artist.name}': {e}"
                )
                continue
            if url:
                return url
        return None

    async def find_image_by_name(self, name: str) -> str | None:
        """Image URL for an artist we only know by name (every source is a fallback)."""
        for adapter in self._sources.in_priority_order():
            try:
                url = await self._image_from_search(adapter, name)
            except Exception as e:
                logger.warning(
                    f"Artist image lookup via {adapter.source.value} failed for '{name}': {e}"
                )
                continue
            if url:
                return url
        return None

    async def _image_from_search(self, adapter: IMetadataSource, name: str) -> str | None:
        hits = await adapter.search_artists(name, SEARCH_LIMIT)
        best_id: str | None = None
        best_score = 0.0
        for hit in hits:
            score = artist_similarity(name, hit.name)
            if score >= self._match_threshold and score > best_score:
                best_id, best_score = hit.id, score
        if best_id is None:
            return None
        detail = await adapter.get_artist(best_id)
        return detail.image_url if detail else None
