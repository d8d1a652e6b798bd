"""SQLAlchemy repositories for the canonical catalog."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.domain.entities import (
    CanonicalAlbum,
    CanonicalArtist,
    ExternalIds,
    RetryState,
    Source,
    Track,
    utc_now,
)
from recordhub.domain.ports import IAlbumRepository, IArtistRepository, ITrackRepository
from recordhub.infrastructure.persistence.models import (
    AlbumModel,
    AlbumReviewModel,
    ArtistModel,
    StatusPostModel,
    TrackModel,
    TrackRankingModel,
    ensure_utc_aware,
    genres_list,
    new_id,
)
from recordhub.infrastructure.persistence.retry import translate_storage_errors
from recordhub.infrastructure.persistence.upsert import upsert_by_unique_key

logger = logging.getLogger(__name__)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == 0 or value == []


def _external_ids(model: AlbumModel | ArtistModel) -> ExternalIds:
    return ExternalIds(
        musicbrainz_id=model.musicbrainz_id,
        discogs_id=model.discogs_id,
        spotify_id=model.spotify_id,
    )


def _retry_state(model: AlbumModel | ArtistModel) -> RetryState:
    return RetryState(
        retry_count=model.index_retry_count or 0,
        next_attempt=ensure_utc_aware(model.next_index_attempt)
        if model.next_index_attempt
        else None,
    )


def _source_id_filter(
    model: type[AlbumModel] | type[ArtistModel], external_id: str, source: Source | None
) -> Any:
    if source is not None:
        return getattr(model, source.id_field) == external_id
    return or_(*(getattr(model, s.id_field) == external_id for s in Source))


class AlbumRepository(IAlbumRepository):
    """SQLAlchemy implementation of the canonical album repository."""

    # Hey future me, the session is injected and NOT committed here. Services decide when a unit
    # of work is done. Every write below is safe to repeat.
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _model_to_entity(self, model: AlbumModel) -> CanonicalAlbum:
        return CanonicalAlbum(
            id=model.id,
            title=model.title,
            artist=model.artist,
            release_date=model.release_date,
            cover_art_url=model.cover_art_url,
            genres=genres_list(model.genres),
            total_tracks=model.total_tracks or 0,
            external_ids=_external_ids(model),
            retry=_retry_state(model),
            musicbrainz_url=model.musicbrainz_url,
            discogs_url=model.discogs_url,
            spotify_uri=model.spotify_uri,
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    @translate_storage_errors()
    async def get_by_id(self, album_id: str) -> CanonicalAlbum | None:
        model = await self.session.scalar(
            select(AlbumModel)
            .where(AlbumModel.id == album_id)
            .execution_options(populate_existing=True)
        )
        return self._model_to_entity(model) if model else None

    @translate_storage_errors()
    async def get_by_source_id(
        self, external_id: str, source: Source | None = None
    ) -> CanonicalAlbum | None:
        stmt = (
            select(AlbumModel)
            .where(_source_id_filter(AlbumModel, external_id, source))
            .order_by(AlbumModel.created_at)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        model = await self.session.scalar(stmt)
        return self._model_to_entity(model) if model else None

    @translate_storage_errors()
    async def list_recent(self, limit: int) -> list[CanonicalAlbum]:
        stmt = (
            select(AlbumModel)
            .order_by(AlbumModel.created_at.desc(), AlbumModel.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalars(stmt)
        return [self._model_to_entity(model) for model in result]

    @translate_storage_errors()
    async def list_all(self) -> list[CanonicalAlbum]:
        stmt = (
            select(AlbumModel)
            .order_by(AlbumModel.created_at, AlbumModel.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalars(stmt)
        return [self._model_to_entity(model) for model in result]

    @translate_storage_errors()
    async def rename_artist(self, old_name: str, new_name: str) -> int:
        """Rewrite the artist credit of every album credited exactly `old_name`."""
        result = await self.session.execute(
            update(AlbumModel)
            .where(AlbumModel.artist == old_name)
            .values(artist=new_name, updated_at=utc_now())
        )
        return result.rowcount or 0

    @translate_storage_errors()
    async def insert_if_absent(
        self, album: CanonicalAlbum, source: Source
    ) -> tuple[CanonicalAlbum, bool]:
        external_id = album.external_ids.get(source)
        if not external_id:
            raise ValueError(f"Album has no {source.value} id to insert under")

        values = {
            "id": album.id or new_id(),
            "title": album.title,
            "artist": album.artist,
            "release_date": album.release_date,
            "cover_art_url": album.cover_art_url,
            "genres": list(album.genres),
            "total_tracks": album.total_tracks,
            "musicbrainz_id": album.external_ids.musicbrainz_id,
            "discogs_id": album.external_ids.discogs_id,
            "spotify_id": album.external_ids.spotify_id,
            "musicbrainz_url": album.musicbrainz_url,
            "discogs_url": album.discogs_url,
            "spotify_uri": album.spotify_uri,
            "created_at": album.created_at,
            "updated_at": album.updated_at,
        }
        model, created = await upsert_by_unique_key(
            self.session, AlbumModel, values, key=source.id_field
        )
        return self._model_to_entity(model), created

    @translate_storage_errors()
    async def set_external_id(self, album_id: str, source: Source, external_id: str) -> bool:
        column = getattr(AlbumModel, source.id_field)
        owner = await self.session.scalar(select(AlbumModel.id).where(column == external_id))
        if owner is not None:
            return owner == album_id

        # Only fills an empty slot, an album never silently swaps one id for another.
        stmt = (
            update(AlbumModel)
            .where(AlbumModel.id == album_id, or_(column.is_(None), column == external_id))
            .values({source.id_field: external_id, "updated_at": utc_now()})
        )
        try:
            async with self.session.begin_nested():
                result = await self.session.execute(stmt)
        except IntegrityError:
            logger.info(f"{source.value} id {external_id} was claimed concurrently, not linking")
            return False
        return result.rowcount == 1

    @translate_storage_errors()
    async def fill_missing(self, album_id: str, **values: Any) -> None:
        model = await self.session.get(AlbumModel, album_id, populate_existing=True)
        if model is None:
            return
        changed = False
        for field_name, value in values.items():
            if _is_empty(value):
                continue
            if _is_empty(getattr(model, field_name)):
                setattr(model, field_name, value)
                changed = True
        if changed:
            model.updated_at = utc_now()
            await self.session.flush()

    @translate_storage_errors()
    async def update_retry_state(self, album_id: str, retry: RetryState) -> None:
        await self.session.execute(
            update(AlbumModel)
            .where(AlbumModel.id == album_id)
            .values(index_retry_count=retry.retry_count, next_index_attempt=retry.next_attempt)
        )

    @translate_storage_errors()
    async def list_reindex_candidates(
        self,
        max_retries: int,
        now: datetime,
        limit: int,
        offset: int = 0,
        only_missing_tracks: bool = True,
    ) -> list[CanonicalAlbum]:
        stmt = select(AlbumModel).where(
            AlbumModel.index_retry_count < max_retries,
            or_(
                AlbumModel.next_index_attempt.is_(None),
                AlbumModel.next_index_attempt <= now,
            ),
        )
        if only_missing_tracks:
            stmt = stmt.where(~exists().where(TrackModel.album_id == AlbumModel.id))
        stmt = (
            stmt.order_by(AlbumModel.created_at, AlbumModel.id)
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalars(stmt)
        return [self._model_to_entity(model) for model in result]

    @translate_storage_errors()
    async def set_total_tracks(self, album_id: str, total_tracks: int) -> None:
        await self.session.execute(
            update(AlbumModel)
            .where(AlbumModel.id == album_id)
            .values(total_tracks=total_tracks, updated_at=utc_now())
        )

    @translate_storage_errors()
    async def reassign_dependents(self, from_album_id: str, to_album_id: str) -> dict[str, int]:
        """Re-point reviews, rankings and status posts from one album to another."""
        moved: dict[str, int] = {}
        for model in (AlbumReviewModel, TrackRankingModel, StatusPostModel):
            result = await self.session.execute(
                update(model).where(model.album_id == from_album_id).values(album_id=to_album_id)
            )
            moved[model.__tablename__] = result.rowcount or 0
        return moved

    @translate_storage_errors()
    async def delete(self, album_id: str) -> None:
        await self.session.execute(delete(AlbumModel).where(AlbumModel.id == album_id))


class ArtistRepository(IArtistRepository):
    """SQLAlchemy implementation of the canonical artist repository."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _model_to_entity(self, model: ArtistModel) -> CanonicalArtist:
        return CanonicalArtist(
            id=model.id,
            name=model.name,
            image_url=model.image_url,
            genres=genres_list(model.genres),
            external_ids=_external_ids(model),
            retry=_retry_state(model),
            musicbrainz_url=model.musicbrainz_url,
            discogs_url=model.discogs_url,
            spotify_uri=model.spotify_uri,
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    @translate_storage_errors()
    async def get_by_id(self, artist_id: str) -> CanonicalArtist | None:
        model = await self.session.get(ArtistModel, artist_id, populate_existing=True)
        return self._model_to_entity(model) if model else None

    @translate_storage_errors()
    async def get_by_source_id(
        self, external_id: str, source: Source | None = None
    ) -> CanonicalArtist | None:
        stmt = (
            select(ArtistModel)
            .where(_source_id_filter(ArtistModel, external_id, source))
            .order_by(ArtistModel.created_at)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        model = await self.session.scalar(stmt)
        return self._model_to_entity(model) if model else None

    @translate_storage_errors()
    async def list_recent(self, limit: int) -> list[CanonicalArtist]:
        stmt = (
            select(ArtistModel)
            .order_by(ArtistModel.created_at.desc(), ArtistModel.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalars(stmt)
        return [self._model_to_entity(model) for model in result]

    @translate_storage_errors()
    async def list_all(self) -> list[CanonicalArtist]:
        stmt = (
            select(ArtistModel)
            .order_by(ArtistModel.created_at, ArtistModel.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalars(stmt)
        return [self._model_to_entity(model) for model in result]

    @translate_storage_errors()
    async def rename(self, artist_id: str, name: str) -> None:
        await self.session.execute(
            update(ArtistModel)
            .where(ArtistModel.id == artist_id)
            .values(name=name, updated_at=utc_now())
        )

    @translate_storage_errors()
    async def insert_if_absent(
        self, artist: CanonicalArtist, source: Source
    ) -> tuple[CanonicalArtist, bool]:
        external_id = artist.external_ids.get(source)
        if not external_id:
            raise ValueError(f"Artist has no {source.value} id to insert under")

        values = {
            "id": artist.id or new_id(),
            "name": artist.name,
            "image_url": artist.image_url,
            "genres": list(artist.genres),
            "musicbrainz_id": artist.external_ids.musicbrainz_id,
            "discogs_id": artist.external_ids.discogs_id,
            "spotify_id": artist.external_ids.spotify_id,
            "musicbrainz_url": artist.musicbrainz_url,
            "discogs_url": artist.discogs_url,
            "spotify_uri": artist.spotify_uri,
            "created_at": artist.created_at,
            "updated_at": artist.updated_at,
        }
        model, created = await upsert_by_unique_key(
            self.session, ArtistModel, values, key=source.id_field
        )
        return self._model_to_entity(model), created

    @translate_storage_errors()
    async def set_external_id(self, artist_id: str, source: Source, external_id: str) -> bool:
        column = getattr(ArtistModel, source.id_field)
        owner = await self.session.scalar(select(ArtistModel.id).where(column == external_id))
        if owner is not None:
            return owner == artist_id

        stmt = (
            update(ArtistModel)
            .where(ArtistModel.id == artist_id, or_(column.is_(None), column == external_id))
            .values({source.id_field: external_id, "updated_at": utc_now()})
        )
        try:
            async with self.session.begin_nested():
                result = await self.session.execute(stmt)
        except IntegrityError:
            logger.info(f"{source.value} artist id {external_id} was claimed concurrently")
            return False
        return result.rowcount == 1

    @translate_storage_errors()
    async def fill_missing(self, artist_id: str, **values: Any) -> None:
        model = await self.session.get(ArtistModel, artist_id, populate_existing=True)
        if model is None:
            return
        changed = False
        for field_name, value in values.items():
            if _is_empty(value):
                continue
            if _is_empty(getattr(model, field_name)):
                setattr(model, field_name, value)
                changed = True
        if changed:
            model.updated_at = utc_now()
            await self.session.flush()

    @translate_storage_errors()
    async def update_retry_state(self, artist_id: str, retry: RetryState) -> None:
        await self.session.execute(
            update(ArtistModel)
            .where(ArtistModel.id == artist_id)
            .values(index_retry_count=retry.retry_count, next_index_attempt=retry.next_attempt)
        )

    @translate_storage_errors()
    async def list_reindex_candidates(
        self, max_retries: int, now: datetime, limit: int
    ) -> list[CanonicalArtist]:
        # "No albums yet" means no album credits this exact name, case-insensitively.
        has_album = exists().where(func.lower(AlbumModel.artist) == func.lower(ArtistModel.name))
        stmt = (
            select(ArtistModel)
            .where(
                ArtistModel.index_retry_count < max_retries,
                or_(
                    ArtistModel.next_index_attempt.is_(None),
                    ArtistModel.next_index_attempt <= now,
                ),
                ~has_album,
            )
            .order_by(ArtistModel.created_at, ArtistModel.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalars(stmt)
        return [self._model_to_entity(model) for model in result]

    @translate_storage_errors()
    async def has_album_by_name(self, name: str) -> bool:
        """Same "has albums" test the candidate scan uses."""
        stmt = select(exists().where(func.lower(AlbumModel.artist) == func.lower(name)))
        return bool(await self.session.scalar(stmt))

    @translate_storage_errors()
    async def list_missing_images(self, limit: int) -> list[CanonicalArtist]:
        stmt = (
            select(ArtistModel)
            .where(or_(ArtistModel.image_url.is_(None), ArtistModel.image_url == ""))
            .order_by(ArtistModel.created_at, ArtistModel.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalars(stmt)
        return [self._model_to_entity(model) for model in result]


class TrackRepository(ITrackRepository):
    """SQLAlchemy implementation of the track repository."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _model_to_entity(self, model: TrackModel) -> Track:
        return Track(
            id=model.id,
            album_id=model.album_id,
            title=model.title,
            track_number=model.track_number,
            position=model.position,
            duration_ms=model.duration_ms,
            musicbrainz_id=model.musicbrainz_id,
            spotify_id=model.spotify_id,
            spotify_uri=model.spotify_uri,
            created_at=ensure_utc_aware(model.created_at),
        )

    @translate_storage_errors()
    async def list_by_album(self, album_id: str) -> list[Track]:
        stmt = (
            select(TrackModel)
            .where(TrackModel.album_id == album_id)
            .order_by(TrackModel.track_number, TrackModel.created_at, TrackModel.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.scalars(stmt)
        return [self._model_to_entity(model) for model in result]

    @translate_storage_errors()
    async def count_by_album(self, album_id: str) -> int:
        count = await self.session.scalar(
            select(func.count()).select_from(TrackModel).where(TrackModel.album_id == album_id)
        )
        return int(count or 0)

    # Hey future me - the conflict key depends on what the source gave us. MusicBrainz and
    # Spotify tracks carry ids, so a second insert of the same recording is a no-op. Discogs
    # tracks have no id, those route through the primary key and the indexer filters
    # duplicates by position/title before calling this.
    @translate_storage_errors()
    async def insert_if_absent(self, track: Track) -> tuple[Track, bool]:
        if track.musicbrainz_id:
            key = "musicbrainz_id"
        elif track.spotify_id:
            key = "spotify_id"
        else:
            key = "id"

        values = {
            "id": track.id or new_id(),
            "album_id": track.album_id,
            "title": track.title,
            "track_number": track.track_number,
            "position": track.position,
            "duration_ms": track.duration_ms,
            "musicbrainz_id": track.musicbrainz_id,
            "spotify_id": track.spotify_id,
            "spotify_uri": track.spotify_uri,
            "created_at": track.created_at,
        }
        model, created = await upsert_by_unique_key(self.session, TrackModel, values, key=key)
        return self._model_to_entity(model), created

    @translate_storage_errors()
    async def update_position(self, track_id: str, position: str | None) -> None:
        await self.session.execute(
            update(TrackModel).where(TrackModel.id == track_id).values(position=position)
        )

    @translate_storage_errors()
    async def update_track_numbers(self, numbers: dict[str, int]) -> None:
        for track_id, track_number in numbers.items():
            await self.session.execute(
                update(TrackModel)
                .where(TrackModel.id == track_id)
                .values(track_number=track_number)
            )

    @translate_storage_errors()
    async def delete_many(self, track_ids: list[str]) -> int:
        if not track_ids:
            return 0
        result = await self.session.execute(delete(TrackModel).where(TrackModel.id.in_(track_ids)))
        return result.rowcount or 0

    @translate_storage_errors()
    async def reassign_album(self, from_album_id: str, to_album_id: str) -> int:
        result = await self.session.execute(
            update(TrackModel)
            .where(TrackModel.album_id == from_album_id)
            .values(album_id=to_album_id)
        )
        return result.rowcount or 0

    @translate_storage_errors()
    async def repoint_track_references(self, from_track_ids: list[str], to_track_id: str) -> int:
        """Move rankings that point at duplicate tracks onto the surviving track."""
        if not from_track_ids:
            return 0
        result = await self.session.execute(
            update(TrackRankingModel)
            .where(TrackRankingModel.track_id.in_(from_track_ids))
            .values(track_id=to_track_id)
        )
        return result.rowcount or 0
