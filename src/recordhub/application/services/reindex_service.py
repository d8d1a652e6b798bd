"""Reindex Service - drive deficient catalog entries back through the indexer.

Hey future me - "deficient" means an album with no tracks or an artist with no albums yet.
Those usually come from a source that was down, rate-limited us, or simply had nothing. This
service retries them with a BOUNDED policy kept in the DB (index_retry_count and
next_index_attempt on each row), so a restart doesn't forget anything and nothing retries
forever:

    eligible:  retry_count < max_retries AND (next_attempt IS NULL OR next_attempt <= now)
    success:   retry_count = 0, next_attempt = NULL
    failure:   retry_count += 1, next_attempt = now + retry_interval (fixed, no growth)
    exhausted: retry_count == max_retries, never selected again until someone resets it

Album attempt order: native id -> the other ids in priority order -> last-resort title/artist
search on the sources the album has no id for. Success means "the album now has >= 1 track".

Both the ReindexWorker (every tick) and the admin endpoint / CLI (trigger) call into here.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.application.services.artwork_service import ArtworkService
from recordhub.application.services.catalog_indexer import CatalogIndexer
from recordhub.application.sources.discogs_source import clean_artist_name
from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.config.settings import ReindexerSettings
from recordhub.domain.dtos import ReleaseSummaryDTO
from recordhub.domain.entities import CanonicalAlbum, CanonicalArtist, Source, utc_now
from recordhub.domain.exceptions import DomainException, ValidationError
from recordhub.domain.value_objects.similarity import album_similarity
from recordhub.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    TrackRepository,
)

logger = logging.getLogger(__name__)

REINDEX_TARGETS = ("albums", "artists", "tracks", "artist_names")
SEARCH_LIMIT = 5


@dataclass
class ReindexReport:
    """What one reindex run did."""

    target: str
    dry_run: bool = False
    candidates: int = 0
    succeeded: int = 0
    failed: int = 0
    exhausted: int = 0
    updated: int = 0
    entity_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "dry_run": self.dry_run,
            "candidates": self.candidates,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "exhausted": self.exhausted,
            "updated": self.updated,
            "entity_ids": self.entity_ids,
        }


class ReindexService:
    """Retries indexing for albums without tracks and artists without albums."""

    def __init__(
        self,
        session: AsyncSession,
        sources: MetadataSourceRegistry,
        settings: ReindexerSettings | None = None,
        indexer: CatalogIndexer | None = None,
    ) -> None:
        self._session = session
        self._sources = sources
        self._settings = settings or ReindexerSettings()
        self._albums = AlbumRepository(session)
        self._artists = ArtistRepository(session)
        self._tracks = TrackRepository(session)
        self._indexer = indexer or CatalogIndexer(session, sources, self._settings)
        self._artwork = ArtworkService(sources, self._settings.match_threshold)

    @property
    def _retry_interval(self) -> timedelta:
        return timedelta(seconds=self._settings.retry_interval_seconds)

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    async def trigger(self, target: str, **options: Any) -> ReindexReport:
        """Run one reindex pass for an operator.

        Args:
            target: "albums", "artists", "tracks" or "artist_names"
            **options: albums take limit, offset, only_missing_tracks, dry_run,
                search_fallback. artists take limit and dry_run. tracks take album_id.
                artist_names takes dry_run.

        Raises:
            ValidationError: Unknown target
        """
        if target == "albums":
            return await self.reindex_albums(**options)
        if target == "artists":
            return await self.reindex_artists(**options)
        if target == "tracks":
            return await self.reindex_tracks(**options)
        if target == "artist_names":
            return await self.normalize_artist_names(**options)
        raise ValidationError(
            f"Unknown reindex target '{target}', expected one of {', '.join(REINDEX_TARGETS)}"
        )

    # =========================================================================
    # ALBUMS
    # =========================================================================

    async def reindex_albums(
        self,
        limit: int | None = None,
        offset: int = 0,
        only_missing_tracks: bool = True,
        dry_run: bool = False,
        search_fallback: bool = True,
    ) -> ReindexReport:
        report = ReindexReport(target="albums", dry_run=dry_run)
        candidates = await self._albums.list_reindex_candidates(
            max_retries=self._settings.max_retries,
            now=utc_now(),
            limit=limit or self._settings.album_batch_size,
            offset=offset,
            only_missing_tracks=only_missing_tracks,
        )
        report.candidates = len(candidates)
        report.entity_ids = [album.id for album in candidates]

        if dry_run or not candidates:
            return report

        logger.info(f"Reindexing {len(candidates)} albums")
        for album in candidates:
            # One album blowing up must not cost the rest of the batch their turn
            try:
                success = await self.reindex_album(album, search_fallback=search_fallback)
            except DomainException as e:
                logger.error(f"Reindex of album {album.id} aborted: {e}")
                await self._session.rollback()
                report.failed += 1
                continue

            if success:
                report.succeeded += 1
            else:
                report.failed += 1
                if album.retry.is_exhausted(self._settings.max_retries):
                    report.exhausted += 1
        return report

    async def reindex_album(self, album: CanonicalAlbum, search_fallback: bool = True) -> bool:
        """Try every way we know to get tracks for one album, then record the outcome.

        Returns:
            True if the album has at least one track afterwards
        """
        success = await self._attempt_album(album, search_fallback)

        if success:
            album.retry.record_success()
        else:
            album.retry.record_failure(self._settings.max_retries, self._retry_interval)
            logger.info(
                f"Album {album.id} ('{album.artist} - {album.title}') still has no tracks, "
                f"retry {album.retry.retry_count}/{self._settings.max_retries} "
                f"at {album.retry.next_attempt}"
            )

        await self._albums.update_retry_state(album.id, album.retry)
        await self._session.commit()
        return success

    async def _attempt_album(self, album: CanonicalAlbum, search_fallback: bool) -> bool:
        tried: set[Source] = set()
        for source in Source.in_priority_order():
            external_id = album.external_ids.get(source)
            if not external_id or source not in self._sources:
                continue
            tried.add(source)
            try:
                await self._indexer.index_album(source, external_id)
            except DomainException as e:
                logger.warning(f"Reindex via {source.value}:{external_id} failed: {e}")
                continue
            if await self._tracks.count_by_album(album.id):
                return True

        if not search_fallback:
            return False

        query = f"{album.artist} {album.title}".strip()
        for adapter in self._sources.in_priority_order():
            if adapter.source in tried:
                continue
            try:
                hits = await adapter.search_releases(query, SEARCH_LIMIT)
                best = self._best_hit(album, hits)
                if best is None:
                    continue
                logger.info(
                    f"Search fallback matched album {album.id} to {adapter.source.value}:{best.id}"
                )
                # Link first so the indexer finds THIS album by id. Leaving it to the fuzzy
                # match only sees the newest albums and would create a duplicate.
                if not await self._indexer.resolver.link_external_id(
                    album.id, best.id, adapter.source
                ):
                    continue
                await self._indexer.index_album(adapter.source, best.id)
            except DomainException as e:
                logger.warning(f"Search fallback via {adapter.source.value} failed: {e}")
                continue
            if await self._tracks.count_by_album(album.id):
                return True
        return False

    def _best_hit(
        self, album: CanonicalAlbum, hits: list[ReleaseSummaryDTO]
    ) -> ReleaseSummaryDTO | None:
        best: ReleaseSummaryDTO | None = None
        best_score = 0.0
        for hit in hits:
            score = album_similarity(album, hit)
            if score >= self._settings.match_threshold and score > best_score:
                best, best_score = hit, score
        return best

    async def reindex_external_album(self, source: Source, external_id: str) -> CanonicalAlbum:
        """Reindex a single album named by an external id, creating it if needed."""
        existing = await self._albums.get_by_source_id(external_id, source)
        if existing is None:
            return await self._indexer.index_album(source, external_id)

        await self.reindex_album(existing)
        refreshed = await self._albums.get_by_id(existing.id)
        return refreshed or existing

    # =========================================================================
    # ARTISTS
    # =========================================================================

    async def reindex_artists(
        self, limit: int | None = None, dry_run: bool = False
    ) -> ReindexReport:
        """Fill missing artist images, then expand artists that still have no albums."""
        report = ReindexReport(target="artists", dry_run=dry_run)
        batch = limit or self._settings.artist_batch_size

        missing_images = await self._artists.list_missing_images(batch)
        candidates = await self._artists.list_reindex_candidates(
            max_retries=self._settings.max_retries, now=utc_now(), limit=batch
        )
        report.candidates = len(candidates)
        report.entity_ids = [artist.id for artist in candidates]

        if dry_run:
            return report

        report.updated = await self._refresh_images(missing_images)

        for artist in candidates:
            try:
                success = await self.reindex_artist(artist)
            except DomainException as e:
                logger.error(f"Reindex of artist {artist.id} aborted: {e}")
                await self._session.rollback()
                report.failed += 1
                continue

            if success:
                report.succeeded += 1
            else:
                report.failed += 1
                if artist.retry.is_exhausted(self._settings.max_retries):
                    report.exhausted += 1
        return report

    async def _refresh_images(self, artists: list[CanonicalArtist]) -> int:
        updated = 0
        for artist in artists:
            url = await self._artwork.find_image_by_name(artist.name)
            if not url:
                continue
            await self._artists.fill_missing(artist.id, image_url=url)
            await self._session.commit()
            updated += 1
        if updated:
            logger.info(f"Filled {updated} missing artist images")
        return updated

    async def reindex_artist(self, artist: CanonicalArtist) -> bool:
        """Expand an artist's releases through the indexer and record the outcome."""
        albums = await self._indexer.index_artist_releases(
            artist, max_releases=self._settings.album_batch_size
        )
        # Judged by the candidate scan's own test. Albums credited under another spelling
        # would leave the artist a candidate forever with a freshly reset counter.
        success = await self._artists.has_album_by_name(artist.name)
        if albums and not success:
            logger.warning(
                f"Artist {artist.id} ('{artist.name}') expanded to {len(albums)} albums, "
                f"none credited under that name"
            )

        if success:
            artist.retry.record_success()
        else:
            artist.retry.record_failure(self._settings.max_retries, self._retry_interval)
            logger.info(
                f"Artist {artist.id} ('{artist.name}') still has no albums credited to it, "
                f"retry {artist.retry.retry_count}/{self._settings.max_retries}"
            )

        await self._artists.update_retry_state(artist.id, artist.retry)
        await self._session.commit()
        return success

    # =========================================================================
    # TRACKS
    # =========================================================================

    async def reindex_tracks(
        self, album_id: str | None = None, dry_run: bool = False
    ) -> ReindexReport:
        """Normalize stored positions and renumber (one album or all)."""
        report = ReindexReport(target="tracks", dry_run=dry_run)
        if dry_run:
            return report
        try:
            report.updated = await self._indexer.maintenance.normalize_positions(album_id)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return report

    # =========================================================================
    # ARTIST NAMES
    # =========================================================================

    async def normalize_artist_names(self, dry_run: bool = False) -> ReindexReport:
        """Strip Discogs "(n)" suffixes from stored artist names and the albums credited to them.

        Names like "Nirvana (2)" predate the cleaning in the Discogs adapter. Left alone they
        drag down fuzzy matching and keep the artist a reindex candidate, because the albums
        are credited to the clean name.
        """
        report = ReindexReport(target="artist_names", dry_run=dry_run)
        renames = []
        for artist in await self._artists.list_all():
            cleaned = clean_artist_name(artist.name)
            if cleaned and cleaned != artist.name:
                renames.append((artist, cleaned))
        report.candidates = len(renames)
        report.entity_ids = [artist.id for artist, _ in renames]

        if dry_run or not renames:
            return report

        logger.info(f"Normalizing {len(renames)} artist names")
        for artist, cleaned in renames:
            try:
                await self._artists.rename(artist.id, cleaned)
                albums = await self._albums.rename_artist(artist.name, cleaned)
                await self._session.commit()
            except DomainException as e:
                logger.error(f"Could not rename artist {artist.id} ('{artist.name}'): {e}")
                await self._session.rollback()
                report.failed += 1
                continue
            logger.debug(f"Renamed '{artist.name}' -> '{cleaned}' ({albums} album credits)")
            report.succeeded += 1
            report.updated += albums
        return report
