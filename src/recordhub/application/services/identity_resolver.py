"""Identity resolution: which canonical record is this external id?

Hey future me - this is where "is MusicBrainz release X the same album as Discogs release Y?"
gets decided. Two steps, always in this order:

1. exact: does a canonical row already own this external id? (unique column lookup)
2. fuzzy: is there a recent canonical row whose (artist, title) scores >= threshold?
   If yes, link the external id onto it so step 1 hits next time.

A below-threshold match is NOT an error, it's the normal "nothing here yet" answer and the
caller creates a new canonical row. Storage failures propagate as StorageError.

The fuzzy scan is bounded (most recent N albums) to keep it cheap. It's greedy and
deterministic: the first album in scan order with the highest score wins ties.
"""

import logging

from recordhub.config.settings import ReindexerSettings
from recordhub.domain.entities import CanonicalAlbum, CanonicalArtist, Source
from recordhub.domain.ports import IAlbumRepository, IArtistRepository
from recordhub.domain.value_objects.similarity import (
    AlbumLike,
    album_similarity,
    artist_similarity,
)

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Find-or-link canonical albums and artists for external ids."""

    def __init__(
        self,
        album_repository: IAlbumRepository,
        artist_repository: IArtistRepository,
        settings: ReindexerSettings | None = None,
    ) -> None:
        self._albums = album_repository
        self._artists = artist_repository
        self._settings = settings or ReindexerSettings()

    # =========================================================================
    # Albums
    # =========================================================================

    async def get_album(self, album_id: str) -> CanonicalAlbum | None:
        return await self._albums.get_by_id(album_id)

    async def find_by_source_id(
        self, external_id: str, source: Source | None = None
    ) -> CanonicalAlbum | None:
        """Exact lookup, across all three id columns when source is omitted."""
        return await self._albums.get_by_source_id(external_id, source)

    async def find_matching_album(
        self,
        candidate: AlbumLike,
        threshold: float | None = None,
        source: Source | None = None,
    ) -> str | None:
        """Best fuzzy match among the most recent canonical albums.

        Args:
            candidate: Anything with artist and title
            threshold: Minimum album_similarity, defaults to the configured match threshold
            source: When given, albums already holding an id for this source are skipped,
                they can't absorb a second one

        Returns:
            Canonical album id or None
        """
        threshold = self._settings.match_threshold if threshold is None else threshold
        albums = await self._albums.list_recent(self._settings.match_sample_size)

        best_id: str | None = None
        best_score = 0.0
        for album in albums:
            if source is not None and album.external_ids.get(source):
                continue
            score = album_similarity(candidate, album)
            if score >= threshold and score > best_score:
                best_id, best_score = album.id, score

        if best_id:
            logger.debug(
                f"Fuzzy match for '{candidate.artist} - {candidate.title}': {best_id} "
                f"(score {best_score:.3f})"
            )
        return best_id

    async def link_external_id(self, album_id: str, external_id: str, source: Source) -> bool:
        """Idempotently attach an external id to a canonical album."""
        linked = await self._albums.set_external_id(album_id, source, external_id)
        if linked:
            logger.info(f"Linked {source.value} id {external_id} to album {album_id}")
        else:
            logger.warning(f"Could not link {source.value} id {external_id} to album {album_id}")
        return linked

    async def ensure_source_ids(
        self, external_id: str, source: Source, candidate: AlbumLike
    ) -> str | None:
        """Find-or-link: the canonical id that now owns `external_id`, or None.

        None means no exact owner and no fuzzy match, the caller must create the album.
        """
        existing = await self.find_by_source_id(external_id, source)
        if existing is not None:
            return existing.id

        matched_id = await self.find_matching_album(candidate, source=source)
        if matched_id is None:
            return None

        if await self.link_external_id(matched_id, external_id, source):
            return matched_id

        # Lost a race: someone else linked or inserted this id meanwhile, trust the store.
        winner = await self.find_by_source_id(external_id, source)
        return winner.id if winner else None

    async def resolve_id_to_canonical_id(
        self, external_id: str, source: Source | None = None
    ) -> str | None:
        album = await self.find_by_source_id(external_id, source)
        return album.id if album else None

    # =========================================================================
    # Artists
    # =========================================================================

    async def get_artist(self, artist_id: str) -> CanonicalArtist | None:
        return await self._artists.get_by_id(artist_id)

    async def find_artist_by_source_id(
        self, external_id: str, source: Source | None = None
    ) -> CanonicalArtist | None:
        return await self._artists.get_by_source_id(external_id, source)

    async def find_matching_artist(
        self,
        name: str,
        threshold: float | None = None,
        source: Source | None = None,
    ) -> str | None:
        threshold = self._settings.artist_match_threshold if threshold is None else threshold
        artists = await self._artists.list_recent(self._settings.match_sample_size)

        best_id: str | None = None
        best_score = 0.0
        for artist in artists:
            if source is not None and artist.external_ids.get(source):
                continue
            score = artist_similarity(name, artist.name)
            if score >= threshold and score > best_score:
                best_id, best_score = artist.id, score
        return best_id

    async def link_artist_external_id(
        self, artist_id: str, external_id: str, source: Source
    ) -> bool:
        linked = await self._artists.set_external_id(artist_id, source, external_id)
        if linked:
            logger.info(f"Linked {source.value} id {external_id} to artist {artist_id}")
        return linked

    async def ensure_artist_source_ids(
        self, external_id: str, source: Source, name: str
    ) -> str | None:
        existing = await self.find_artist_by_source_id(external_id, source)
        if existing is not None:
            return existing.id

        matched_id = await self.find_matching_artist(name, source=source)
        if matched_id is None:
            return None

        if await self.link_artist_external_id(matched_id, external_id, source):
            return matched_id

        winner = await self.find_artist_by_source_id(external_id, source)
        return winner.id if winner else None
