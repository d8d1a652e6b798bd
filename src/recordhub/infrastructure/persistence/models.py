"""SQLAlchemy ORM models for RecordHub."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from recordhub.domain.entities import ensure_utc_aware, utc_now

__all__ = [
    "AlbumModel",
    "AlbumReviewModel",
    "ArtistModel",
    "Base",
    "StatusPostModel",
    "TrackModel",
    "TrackRankingModel",
    "ensure_utc_aware",
    "new_id",
    "utc_now",
]


def new_id() -> str:
    """Opaque stable identifier for canonical rows."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, AlbumModel is THE canonical album row. The three source id columns are nullable but
# individually UNIQUE - that constraint is what makes concurrent indexing safe (insert-if-absent
# relies on it). Never drop those unique flags "for performance", you'll get duplicate albums.
# genres is a JSON list, retry bookkeeping (index_retry_count / next_index_attempt) lives here
# too so the reindexer survives restarts.
class AlbumModel(Base):
    """Canonical album."""

    __tablename__ = "albums"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    artist: Mapped[str] = mapped_column(String(512), nullable=False)
    release_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    cover_art_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    genres: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    total_tracks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    musicbrainz_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    discogs_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    spotify_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    musicbrainz_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    discogs_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    spotify_uri: Mapped[str | None] = mapped_column(String(128), nullable=True)

    index_retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_index_attempt: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    tracks: Mapped[list["TrackModel"]] = relationship(
        "TrackModel",
        back_populates="album",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_albums_created_at", "created_at"),
        Index("ix_albums_artist_lower", func.lower(artist)),
    )


class ArtistModel(Base):
    """Canonical artist."""

    __tablename__ = "artists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    genres: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    musicbrainz_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    discogs_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    spotify_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    musicbrainz_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    discogs_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    spotify_uri: Mapped[str | None] = mapped_column(String(128), nullable=True)

    index_retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_index_attempt: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_artists_created_at", "created_at"),
        Index("ix_artists_name_lower", func.lower(name)),
    )


# Hey future me - track_number is NOT NULL and meant to be dense 1..N per album, but there's no
# unique constraint on (album_id, track_number): renumbering rewrites many rows at once and a
# constraint would trip mid-update. The maintenance routines keep it dense instead.
class TrackModel(Base):
    """Track owned by a canonical album."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    album_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    track_number: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[str | None] = mapped_column(String(32), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    musicbrainz_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    spotify_id: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    spotify_uri: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    album: Mapped[AlbumModel] = relationship("AlbumModel", back_populates="tracks")


# Yo, the next three tables belong to the review / ranking / social subsystems. The catalog only
# cares that they reference albums (and tracks) so the merge tool can re-point them.
class AlbumReviewModel(Base):
    """User review of an album."""

    __tablename__ = "album_reviews"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    album_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class TrackRankingModel(Base):
    """A user's ranking of a track within an album."""

    __tablename__ = "track_rankings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    album_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    track_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="SET NULL"), nullable=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class StatusPostModel(Base):
    """Social feed post that may reference an album."""

    __tablename__ = "status_posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    album_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("albums.id", ondelete="SET NULL"), nullable=True, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


def genres_list(value: Any) -> list[str]:
    """Coerce a stored genres value into a list."""
    if not value:
        return []
    return [str(item) for item in value]
