"""Per-album track dedupe, renumbering and position normalization.

Hey future me - track_number must end up dense 1..N per album, in the canonical
(position, title) order from position_sort_key. Sources and merges break that all the time:

- merging two canonical albums dumps both track lists into one album
- a second source adds its tracks to an album that already had some
- older rows were stored with raw positions ("A01", "Side B - 3")

Every routine here is safe to re-run: a clean album comes out unchanged.
"""

import logging
from dataclasses import dataclass

from recordhub.domain.entities import Track
from recordhub.domain.ports import IAlbumRepository, ITrackRepository
from recordhub.domain.value_objects.track_position import normalize_position, position_sort_key

logger = logging.getLogger(__name__)


@dataclass
class TrackCleanupResult:
    """Outcome of one album's dedupe/renumber pass."""

    album_id: str
    deleted: int = 0
    renumbered: int = 0
    remaining: int = 0


def dedupe_key(track: Track) -> tuple[str, str]:
    """Group key: normalized position when present, else the lower-cased title."""
    parsed = normalize_position(track.position)
    if parsed.normalized:
        return ("position", parsed.normalized)
    return ("title", track.title.strip().lower())


def canonical_order(tracks: list[Track]) -> list[Track]:
    return sorted(
        tracks,
        key=lambda track: (
            position_sort_key(track.position, track.title),
            track.created_at,
            track.id,
        ),
    )


def pick_surviving_track(group: list[Track]) -> Track:
    """Most external ids wins, earliest created breaks ties."""
    return min(group, key=lambda track: (-track.external_id_score, track.created_at, track.id))


class TrackMaintenanceService:
    """Keeps an album's track list deduplicated and densely numbered."""

    def __init__(
        self, track_repository: ITrackRepository, album_repository: IAlbumRepository
    ) -> None:
        self._tracks = track_repository
        self._albums = album_repository

    async def renumber_album(self, album_id: str) -> int:
        """Assign track numbers 1..N in canonical order.

        Returns:
            Number of tracks whose number changed
        """
        tracks = await self._tracks.list_by_album(album_id)
        changes = {
            track.id: index
            for index, track in enumerate(canonical_order(tracks), start=1)
            if track.track_number != index
        }
        if changes:
            await self._tracks.update_track_numbers(changes)
        await self._albums.set_total_tracks(album_id, len(tracks))
        return len(changes)

    async def dedupe_and_renumber(self, album_id: str) -> TrackCleanupResult:
        """Drop duplicate tracks (same position, else same title) and renumber."""
        tracks = await self._tracks.list_by_album(album_id)

        groups: dict[tuple[str, str], list[Track]] = {}
        for track in tracks:
            groups.setdefault(dedupe_key(track), []).append(track)

        doomed: list[str] = []
        for group in groups.values():
            if len(group) < 2:
                continue
            keeper = pick_surviving_track(group)
            losers = [track.id for track in group if track.id != keeper.id]
            # Rankings follow the surviving track instead of going NULL on delete
            await self._tracks.repoint_track_references(losers, keeper.id)
            doomed.extend(losers)

        deleted = await self._tracks.delete_many(doomed)
        renumbered = await self.renumber_album(album_id)

        if deleted or renumbered:
            logger.info(
                f"Album {album_id}: removed {deleted} duplicate tracks, renumbered {renumbered}"
            )
        return TrackCleanupResult(
            album_id=album_id,
            deleted=deleted,
            renumbered=renumbered,
            remaining=len(tracks) - deleted,
        )

    async def normalize_positions(self, album_id: str | None = None) -> int:
        """Rewrite stored positions to their normalized form and renumber.

        Args:
            album_id: Single album, or every album when None

        Returns:
            Number of tracks whose position changed
        """
        if album_id is not None:
            album_ids = [album_id]
        else:
            album_ids = [album.id for album in await self._albums.list_all()]

        updated = 0
        for current_id in album_ids:
            for track in await self._tracks.list_by_album(current_id):
                if track.position is None:
                    continue
                normalized = normalize_position(track.position).normalized
                if normalized != track.position:
                    await self._tracks.update_position(track.id, normalized)
                    updated += 1
            await self.renumber_album(current_id)

        logger.info(f"Normalized {updated} track positions across {len(album_ids)} albums")
        return updated
