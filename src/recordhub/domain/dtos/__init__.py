"""Data transfer objects returned by metadata sources.

Hey future me - these are the shapes every source adapter (MusicBrainz, Discogs, Spotify)
must hand to the indexer. The indexer never sees raw API JSON, only these. Source-specific
quirks (MB media numbering, Discogs free-text positions, Spotify disc numbers) are resolved
by the adapter BEFORE the DTO is built, except position normalization which the indexer
does itself.
"""

from dataclasses import dataclass, field

from recordhub.domain.entities import Source
from recordhub.domain.exceptions import ValidationError


@dataclass
class ReleaseSummaryDTO:
    """A search hit for a release."""

    id: str
    title: str
    artist: str
    source: Source
    release_date: str | None = None
    cover_art_url: str | None = None


@dataclass
class TrackDTO:
    """One track as the source reports it.

    position is the raw token from the source, normalization happens later.
    """

    title: str
    id: str | None = None
    position: str | None = None
    duration_ms: int | None = None
    uri: str | None = None


@dataclass
class MediumDTO:
    """A disc, side pair or digital medium."""

    tracks: list[TrackDTO] = field(default_factory=list)
    title: str | None = None


@dataclass
class ReleaseDTO:
    """Full release with its track media."""

    id: str
    title: str
    artist: str
    source: Source
    release_date: str | None = None
    genres: list[str] = field(default_factory=list)
    media: list[MediumDTO] = field(default_factory=list)
    cover_art_url: str | None = None
    url: str | None = None
    total_tracks: int | None = None

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError("Release title cannot be empty")

    @property
    def tracks(self) -> list[TrackDTO]:
        """All tracks in ingestion order across media."""
        return [track for medium in self.media for track in medium.tracks]


@dataclass
class ArtistSummaryDTO:
    """A search hit for an artist."""

    id: str
    name: str
    source: Source


@dataclass
class ArtistDTO:
    """Full artist record."""

    id: str
    name: str
    source: Source
    genres: list[str] = field(default_factory=list)
    image_url: str | None = None
    url: str | None = None
    # Release (or release-group) ids the source knows for this artist. The reindexer expands
    # these through the indexer when the artist still has no albums.
    release_ids: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Artist name cannot be empty")


__all__ = [
    "ArtistDTO",
    "ArtistSummaryDTO",
    "MediumDTO",
    "ReleaseDTO",
    "ReleaseSummaryDTO",
    "TrackDTO",
]
