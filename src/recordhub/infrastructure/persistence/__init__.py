"""Persistence layer."""

from recordhub.infrastructure.persistence.database import Database
from recordhub.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    TrackRepository,
)
from recordhub.infrastructure.persistence.upsert import upsert_by_unique_key

__all__ = [
    "AlbumRepository",
    "ArtistRepository",
    "Database",
    "TrackRepository",
    "upsert_by_unique_key",
]
