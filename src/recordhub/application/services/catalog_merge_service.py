"""Catalog Merge Service - offline duplicate album consolidation.

Hey future me - this is the batch cleanup for duplicates the online resolver missed (two
sources indexed at the same moment, titles that only became similar after an edit, data from
before the fuzzy matcher existed). It is NOT part of any request path.

Per run:
1. cluster every canonical album greedily by album_similarity >= merge threshold
2. pick a survivor per cluster (most external ids by source weight, then oldest)
3. move tracks, reviews, rankings and status posts onto the survivor
4. delete the absorbed albums, then union their external ids onto the survivor
5. dedupe + renumber the survivor's tracks

Usage:
    service = CatalogMergeService(session)
    report = await service.dedupe_albums(dry_run=True)
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.application.services.track_maintenance import TrackMaintenanceService
from recordhub.config.settings import ReindexerSettings
from recordhub.domain.entities import CanonicalAlbum
from recordhub.domain.exceptions import ValidationError
from recordhub.domain.value_objects.similarity import album_similarity
from recordhub.infrastructure.persistence.repositories import AlbumRepository, TrackRepository

logger = logging.getLogger(__name__)

# Album fields copied from an absorbed album when the survivor has nothing there
_FILLABLE_FIELDS = (
    "release_date",
    "cover_art_url",
    "genres",
    "musicbrainz_url",
    "discogs_url",
    "spotify_uri",
)


@dataclass
class MergeResult:
    """Outcome of folding one cluster into its survivor."""

    survivor_id: str
    absorbed_ids: list[str] = field(default_factory=list)
    tracks_moved: int = 0
    tracks_deleted: int = 0
    dependents_moved: dict[str, int] = field(default_factory=dict)
    dropped_ids: list[str] = field(default_factory=list)


@dataclass
class DedupeReport:
    """Summary of a dedupe_albums run."""

    dry_run: bool
    clusters: list[dict[str, Any]] = field(default_factory=list)
    albums_merged: int = 0
    tracks_deleted: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "clusters_found": len(self.clusters),
            "albums_merged": self.albums_merged,
            "tracks_deleted": self.tracks_deleted,
            "clusters": self.clusters,
        }


class CatalogMergeService:
    """Finds and merges duplicate canonical albums."""

    def __init__(self, session: AsyncSession, settings: ReindexerSettings | None = None) -> None:
        self._session = session
        self._settings = settings or ReindexerSettings()
        self._albums = AlbumRepository(session)
        self._tracks = TrackRepository(session)
        self._maintenance = TrackMaintenanceService(self._tracks, self._albums)

    # =========================================================================
    # DETECTION
    # =========================================================================

    async def find_duplicate_clusters(
        self, threshold: float | None = None
    ) -> list[list[CanonicalAlbum]]:
        """Greedy clustering by album similarity.

        Each unprocessed album (oldest first) sweeps every later unprocessed album and absorbs
        those scoring >= threshold against it. Not transitive: C only joins A's cluster if it
        matches A itself.

        Returns:
            Clusters with at least two albums
        """
        threshold = self._settings.merge_threshold if threshold is None else threshold
        albums = await self._albums.list_all()

        processed: set[str] = set()
        clusters: list[list[CanonicalAlbum]] = []
        for index, album in enumerate(albums):
            if album.id in processed:
                continue
            processed.add(album.id)
            cluster = [album]
            for other in albums[index + 1 :]:
                if other.id in processed:
                    continue
                if album_similarity(album, other) >= threshold:
                    cluster.append(other)
                    processed.add(other.id)
            if len(cluster) > 1:
                clusters.append(cluster)
        return clusters

    @staticmethod
    def pick_survivor(cluster: list[CanonicalAlbum]) -> CanonicalAlbum:
        """Highest external-id priority score, then earliest created, then id."""
        if not cluster:
            raise ValidationError("Cannot pick a survivor from an empty cluster")
        return min(
            cluster,
            key=lambda album: (-album.external_ids.priority_score(), album.created_at, album.id),
        )

    # =========================================================================
    # MERGING
    # =========================================================================

    async def merge_cluster(self, cluster: list[CanonicalAlbum]) -> MergeResult:
        """Fold every album of the cluster into its survivor and commit."""
        survivor = self.pick_survivor(cluster)
        result = MergeResult(survivor_id=survivor.id)

        try:
            for absorbed in cluster:
                if absorbed.id == survivor.id:
                    continue
                await self._absorb(survivor, absorbed, result)

            cleanup = await self._maintenance.dedupe_and_renumber(survivor.id)
            result.tracks_deleted = cleanup.deleted
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        logger.info(
            f"Merged {len(result.absorbed_ids)} albums into {survivor.id} "
            f"('{survivor.artist} - {survivor.title}'), moved {result.tracks_moved} tracks, "
            f"removed {result.tracks_deleted} duplicate tracks"
        )
        return result

    async def _absorb(
        self, survivor: CanonicalAlbum, absorbed: CanonicalAlbum, result: MergeResult
    ) -> None:
        result.tracks_moved += await self._tracks.reassign_album(absorbed.id, survivor.id)
        moved = await self._albums.reassign_dependents(absorbed.id, survivor.id)
        for table, count in moved.items():
            result.dependents_moved[table] = result.dependents_moved.get(table, 0) + count

        # The ids are unique per column, so the absorbed row has to go before they can move.
        await self._albums.delete(absorbed.id)
        result.absorbed_ids.append(absorbed.id)

        for source, external_id in absorbed.external_ids.present().items():
            existing = survivor.external_ids.get(source)
            if existing and existing != external_id:
                logger.warning(
                    f"Dropping {source.value} id {external_id} from absorbed album {absorbed.id}, "
                    f"survivor {survivor.id} already has {existing}"
                )
                result.dropped_ids.append(external_id)
                continue
            if await self._albums.set_external_id(survivor.id, source, external_id):
                survivor.external_ids.set(source, external_id)

        await self._albums.fill_missing(
            survivor.id, **{name: getattr(absorbed, name) for name in _FILLABLE_FIELDS}
        )

    async def dedupe_albums(self, dry_run: bool = False) -> DedupeReport:
        """Find every duplicate cluster and merge it (or only report with dry_run)."""
        report = DedupeReport(dry_run=dry_run)
        clusters = await self.find_duplicate_clusters()

        for cluster in clusters:
            survivor = self.pick_survivor(cluster)
            report.clusters.append(
                {
                    "survivor_id": survivor.id,
                    "title": survivor.title,
                    "artist": survivor.artist,
                    "absorbed_ids": [album.id for album in cluster if album.id != survivor.id],
                }
            )
            if dry_run:
                continue
            merged = await self.merge_cluster(cluster)
            report.albums_merged += len(merged.absorbed_ids)
            report.tracks_deleted += merged.tracks_deleted

        logger.info(
            f"Album dedupe {'(dry run) ' if dry_run else ''}found {len(clusters)} clusters, "
            f"merged {report.albums_merged} albums"
        )
        return report
