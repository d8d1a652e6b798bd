"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from recordhub.domain.entities import (
    CanonicalAlbum,
    CanonicalArtist,
    RetryState,
    Source,
    Track,
)
from recordhub.domain.ports.metadata_source import IMetadataSource


# Hey future me, IAlbumRepository is a PORT! Services depend on this ABC, the SQLAlchemy version
# lives in infrastructure/persistence/repositories.py. Every write here must be idempotent on its
# own: concurrent indexers for the same external id rely on unique constraints, not locks.
class IAlbumRepository(ABC):
    """Repository interface for canonical albums."""

    @abstractmethod
    async def get_by_id(self, album_id: str) -> CanonicalAlbum | None:
        pass

    @abstractmethod
    async def get_by_source_id(
        self, external_id: str, source: Source | None = None
    ) -> CanonicalAlbum | None:
        """Exact lookup by external id. Without a source, all three id columns are checked."""
        pass

    @abstractmethod
    async def list_recent(self, limit: int) -> list[CanonicalAlbum]:
        """Most recently created albums first."""
        pass

    @abstractmethod
    async def list_all(self) -> list[CanonicalAlbum]:
        """All albums, oldest first."""
        pass

    @abstractmethod
    async def rename_artist(self, old_name: str, new_name: str) -> int:
        """Rewrite the artist credit on albums credited exactly `old_name`."""
        pass

    @abstractmethod
    async def insert_if_absent(
        self, album: CanonicalAlbum, source: Source
    ) -> tuple[CanonicalAlbum, bool]:
        """Insert unless another row already owns album's id for `source`.

        Returns:
            (stored album, created) - on conflict the winning row is re-read and returned
        """
        pass

    @abstractmethod
    async def set_external_id(self, album_id: str, source: Source, external_id: str) -> bool:
        """Idempotently set the id column for `source`. False if the album is gone or the id is
        owned by another album."""
        pass

    @abstractmethod
    async def fill_missing(self, album_id: str, **values: Any) -> None:
        """Set the given columns only where they are currently empty."""
        pass

    @abstractmethod
    async def update_retry_state(self, album_id: str, retry: RetryState) -> None:
        pass

    @abstractmethod
    async def list_reindex_candidates(
        self,
        max_retries: int,
        now: datetime,
        limit: int,
        offset: int = 0,
        only_missing_tracks: bool = True,
    ) -> list[CanonicalAlbum]:
        """Retry-eligible albums, by default only those without any track rows."""
        pass

    @abstractmethod
    async def set_total_tracks(self, album_id: str, total_tracks: int) -> None:
        pass

    @abstractmethod
    async def reassign_dependents(self, from_album_id: str, to_album_id: str) -> dict[str, int]:
        """Re-point rows owned by other subsystems (reviews, rankings, posts)."""
        pass

    @abstractmethod
    async def delete(self, album_id: str) -> None:
        pass


class IArtistRepository(ABC):
    """Repository interface for canonical artists."""

    @abstractmethod
    async def get_by_id(self, artist_id: str) -> CanonicalArtist | None:
        pass

    @abstractmethod
    async def get_by_source_id(
        self, external_id: str, source: Source | None = None
    ) -> CanonicalArtist | None:
        pass

    @abstractmethod
    async def list_recent(self, limit: int) -> list[CanonicalArtist]:
        pass

    @abstractmethod
    async def list_all(self) -> list[CanonicalArtist]:
        pass

    @abstractmethod
    async def rename(self, artist_id: str, name: str) -> None:
        pass

    @abstractmethod
    async def insert_if_absent(
        self, artist: CanonicalArtist, source: Source
    ) -> tuple[CanonicalArtist, bool]:
        pass

    @abstractmethod
    async def set_external_id(self, artist_id: str, source: Source, external_id: str) -> bool:
        pass

    @abstractmethod
    async def fill_missing(self, artist_id: str, **values: Any) -> None:
        pass

    @abstractmethod
    async def update_retry_state(self, artist_id: str, retry: RetryState) -> None:
        pass

    @abstractmethod
    async def list_reindex_candidates(
        self, max_retries: int, now: datetime, limit: int
    ) -> list[CanonicalArtist]:
        """Retry-eligible artists that no album is credited to yet."""
        pass

    @abstractmethod
    async def has_album_by_name(self, name: str) -> bool:
        pass

    @abstractmethod
    async def list_missing_images(self, limit: int) -> list[CanonicalArtist]:
        pass


class ITrackRepository(ABC):
    """Repository interface for album tracks."""

    @abstractmethod
    async def list_by_album(self, album_id: str) -> list[Track]:
        """Tracks of an album ordered by track_number, then creation time."""
        pass

    @abstractmethod
    async def count_by_album(self, album_id: str) -> int:
        pass

    @abstractmethod
    async def insert_if_absent(self, track: Track) -> tuple[Track, bool]:
        """Insert unless a track with the same external track id already exists."""
        pass

    @abstractmethod
    async def update_position(self, track_id: str, position: str | None) -> None:
        pass

    @abstractmethod
    async def update_track_numbers(self, numbers: dict[str, int]) -> None:
        pass

    @abstractmethod
    async def delete_many(self, track_ids: list[str]) -> int:
        pass

    @abstractmethod
    async def reassign_album(self, from_album_id: str, to_album_id: str) -> int:
        pass

    @abstractmethod
    async def repoint_track_references(self, from_track_ids: list[str], to_track_id: str) -> int:
        pass


__all__ = [
    "IAlbumRepository",
    "IArtistRepository",
    "IMetadataSource",
    "ITrackRepository",
]
