"""API schemas for the canonical catalog."""

from typing import Literal

from pydantic import BaseModel, Field

from recordhub.domain.entities import CanonicalAlbum, CanonicalArtist, Track


class TrackResponse(BaseModel):
    """One track of a canonical album."""

    id: str
    title: str
    track_number: int
    position: str | None = None
    duration_ms: int | None = None
    musicbrainz_id: str | None = None
    spotify_id: str | None = None

    @classmethod
    def from_entity(cls, track: Track) -> "TrackResponse":
        return cls(
            id=track.id,
            title=track.title,
            track_number=track.track_number,
            position=track.position,
            duration_ms=track.duration_ms,
            musicbrainz_id=track.musicbrainz_id,
            spotify_id=track.spotify_id,
        )


class AlbumResponse(BaseModel):
    """Canonical album with its tracks."""

    id: str
    title: str
    artist: str
    release_date: str | None = None
    cover_art_url: str | None = None
    genres: list[str] = Field(default_factory=list)
    total_tracks: int = 0
    musicbrainz_id: str | None = None
    discogs_id: str | None = None
    spotify_id: str | None = None
    tracks: list[TrackResponse] = Field(default_factory=list)
    metadata_available: bool = Field(
        default=True,
        description="False when on-demand indexing failed and stored data is shown as-is",
    )

    @classmethod
    def from_entity(
        cls,
        album: CanonicalAlbum,
        tracks: list[Track] | None = None,
        metadata_available: bool = True,
    ) -> "AlbumResponse":
        return cls(
            id=album.id,
            title=album.title,
            artist=album.artist,
            release_date=album.release_date,
            cover_art_url=album.cover_art_url,
            genres=list(album.genres),
            total_tracks=album.total_tracks,
            musicbrainz_id=album.musicbrainz_id,
            discogs_id=album.discogs_id,
            spotify_id=album.spotify_id,
            tracks=[TrackResponse.from_entity(track) for track in tracks or []],
            metadata_available=metadata_available,
        )


class ArtistResponse(BaseModel):
    """Canonical artist."""

    id: str
    name: str
    image_url: str | None = None
    genres: list[str] = Field(default_factory=list)
    musicbrainz_id: str | None = None
    discogs_id: str | None = None
    spotify_id: str | None = None

    @classmethod
    def from_entity(cls, artist: CanonicalArtist) -> "ArtistResponse":
        return cls(
            id=artist.id,
            name=artist.name,
            image_url=artist.image_url,
            genres=list(artist.genres),
            musicbrainz_id=artist.external_ids.musicbrainz_id,
            discogs_id=artist.external_ids.discogs_id,
            spotify_id=artist.external_ids.spotify_id,
        )


class ExternalIdsRequest(BaseModel):
    """Ids for get-or-create. external_id is classified by its shape."""

    external_id: str | None = None
    musicbrainz_id: str | None = None
    discogs_id: str | None = None
    spotify_id: str | None = None


class ResolveResponse(BaseModel):
    external_id: str
    source: str | None = None
    album_id: str


class ReindexRequest(BaseModel):
    """Operator-triggered reindex."""

    target: Literal["albums", "artists", "tracks", "artist_names"] = "albums"
    limit: int | None = Field(default=None, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)
    only_missing_tracks: bool = True
    dry_run: bool = False
    search_fallback: bool = True
    album_id: str | None = Field(default=None, description="tracks target only")
