"""Catalog indexer: external record -> canonical album/artist + tracks.

Hey future me - this is THE pipeline every caller goes through (album pages, admin reindex,
the background worker). Per album:

1. cache hit: a canonical album already owns the id AND has tracks, all with a position
2. fetch the release from the source (nothing back -> NotFoundUpstreamError)
3. identity: exact id owner, else fuzzy match on (artist, title) and link the id onto it
4. otherwise insert a new canonical row (insert-if-absent on the unique id column)
5. insert tracks with dense numbers, skipping ones the album already has
6. backfill positions on old tracks that were stored without one
7. cover art (native, then cross-source fallback), fill whatever is still missing, commit

Every step is an idempotent write against a unique constraint, there are NO in-process locks.
Two requests indexing the same id at the same time both end up with the same canonical row.
"""

import logging
import re
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.application.services.artwork_service import ArtworkService
from recordhub.application.services.identity_resolver import IdentityResolver
from recordhub.application.services.track_maintenance import TrackMaintenanceService
from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.config.settings import ReindexerSettings
from recordhub.domain.dtos import ArtistDTO, ReleaseDTO, TrackDTO
from recordhub.domain.entities import (
    CanonicalAlbum,
    CanonicalArtist,
    ExternalIds,
    Source,
    Track,
)
from recordhub.domain.exceptions import (
    ConfigurationError,
    DomainException,
    EntityNotFoundException,
    NotFoundUpstreamError,
    SourceUnavailableError,
    StorageError,
    ValidationError,
)
from recordhub.domain.value_objects.track_position import assign_track_numbers, normalize_position
from recordhub.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    TrackRepository,
)

logger = logging.getLogger(__name__)

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

# Which album/artist column keeps the link back to the source's web page
_URL_FIELDS = {
    Source.MUSICBRAINZ: "musicbrainz_url",
    Source.DISCOGS: "discogs_url",
    Source.SPOTIFY: "spotify_uri",
}


def classify_external_id(external_id: str) -> Source:
    """Guess the source of an unlabelled id from its shape.

    MusicBrainz ids are UUIDs, Discogs ids are plain integers, anything else is treated
    as a Spotify base62 id.
    """
    value = external_id.strip()
    if _UUID_RE.match(value):
        return Source.MUSICBRAINZ
    if value.isdigit():
        return Source.DISCOGS
    return Source.SPOTIFY


def _collect_ids(
    external_id: str | None,
    musicbrainz_id: str | None,
    discogs_id: str | None,
    spotify_id: str | None,
) -> list[tuple[Source, str]]:
    ids = {
        Source.MUSICBRAINZ: musicbrainz_id,
        Source.DISCOGS: discogs_id,
        Source.SPOTIFY: spotify_id,
    }
    if external_id:
        guessed = classify_external_id(external_id)
        ids[guessed] = ids[guessed] or external_id.strip()

    collected = [(source, ids[source]) for source in Source.in_priority_order() if ids[source]]
    if not collected:
        raise ValidationError("At least one external id is required")
    return collected  # type: ignore[return-value]


def _title_key(title: str | None) -> str:
    return (title or "").strip().casefold()


class CatalogIndexer:
    """Indexes albums and artists from any registered metadata source.

    One indexer per session. Each index_* call is its own unit of work and commits
    on success, rolls back on failure.
    """

    def __init__(
        self,
        session: AsyncSession,
        sources: MetadataSourceRegistry,
        settings: ReindexerSettings | None = None,
        artwork: ArtworkService | None = None,
    ) -> None:
        self._session = session
        self._sources = sources
        self._settings = settings or ReindexerSettings()
        self._albums = AlbumRepository(session)
        self._artists = ArtistRepository(session)
        self._tracks = TrackRepository(session)
        self._resolver = IdentityResolver(self._albums, self._artists, self._settings)
        self._maintenance = TrackMaintenanceService(self._tracks, self._albums)
        self._artwork = artwork or ArtworkService(sources, self._settings.match_threshold)

    @property
    def resolver(self) -> IdentityResolver:
        return self._resolver

    @property
    def maintenance(self) -> TrackMaintenanceService:
        return self._maintenance

    # =========================================================================
    # Albums
    # =========================================================================

    async def index_album_from_musicbrainz(self, release_id: str) -> CanonicalAlbum:
        return await self.index_album(Source.MUSICBRAINZ, release_id)

    async def index_album_from_discogs(self, release_id: str) -> CanonicalAlbum:
        return await self.index_album(Source.DISCOGS, release_id)

    async def index_album_from_spotify(self, album_id: str) -> CanonicalAlbum:
        return await self.index_album(Source.SPOTIFY, album_id)

    async def index_album(self, source: Source, external_id: str) -> CanonicalAlbum:
        """Fetch, resolve and store one album with its tracks.

        Args:
            source: Source the id belongs to
            external_id: Release id at that source (MusicBrainz also takes release-group ids)

        Returns:
            The canonical album, re-read after commit

        Raises:
            NotFoundUpstreamError: The source has no such release
            SourceUnavailableError: The source could not be reached
            ConfigurationError: No adapter registered for the source
            StorageError: Persistence failed
        """
        try:
            album = await self._index_album(source, external_id)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        refreshed = await self._albums.get_by_id(album.id)
        return refreshed or album

    async def _index_album(self, source: Source, external_id: str) -> CanonicalAlbum:
        existing = await self._resolver.find_by_source_id(external_id, source)
        if existing is not None and await self._is_complete(existing.id):
            logger.debug(f"Album {source.value}:{external_id} already indexed as {existing.id}")
            return existing

        adapter = self._sources.get(source)
        release = await adapter.get_release(external_id)
        if release is None:
            raise NotFoundUpstreamError(source.value, external_id)

        # Stored under the id the source returned. For a MusicBrainz release group that's the
        # preferred release, so the release id is checked too.
        if existing is None and release.id != external_id:
            existing = await self._resolver.find_by_source_id(release.id, source)
            if existing is not None and await self._is_complete(existing.id):
                return existing

        if existing is not None:
            album = existing
        else:
            album = await self._resolve_or_create_album(source, release)

        existing_tracks = await self._tracks.list_by_album(album.id)
        inserted = await self._insert_tracks(album, source, release, existing_tracks)
        backfilled = await self._backfill_positions(existing_tracks, source, release)

        if existing_tracks and (inserted or backfilled):
            # Second source added to an album that already had tracks: numbers must be 1..N again
            await self._maintenance.renumber_album(album.id)
        elif inserted:
            await self._albums.set_total_tracks(
                album.id, await self._tracks.count_by_album(album.id)
            )

        await self._fill_album_metadata(album, source, release)

        logger.info(
            f"Indexed {source.value}:{external_id} -> album {album.id} "
            f"('{release.artist} - {release.title}', {inserted} new tracks)"
        )
        return album

    async def _is_complete(self, album_id: str) -> bool:
        tracks = await self._tracks.list_by_album(album_id)
        return bool(tracks) and all(track.position for track in tracks)

    async def _resolve_or_create_album(self, source: Source, release: ReleaseDTO) -> CanonicalAlbum:
        canonical_id = await self._resolver.ensure_source_ids(release.id, source, release)
        if canonical_id is not None:
            album = await self._albums.get_by_id(canonical_id)
            if album is None:
                raise EntityNotFoundException("Album", canonical_id)
            logger.info(
                f"Linked {source.value}:{release.id} onto existing album {canonical_id} "
                f"('{album.artist} - {album.title}')"
            )
            return album

        external_ids = ExternalIds()
        external_ids.set(source, release.id)
        candidate = CanonicalAlbum(
            id=str(uuid.uuid4()),
            title=release.title.strip(),
            artist=release.artist.strip(),
            release_date=release.release_date,
            cover_art_url=release.cover_art_url,
            genres=list(release.genres),
            external_ids=external_ids,
        )
        setattr(candidate, _URL_FIELDS[source], release.url)

        album, created = await self._albums.insert_if_absent(candidate, source)
        if not created:
            logger.info(f"Album {source.value}:{release.id} was inserted concurrently, reusing")
        return album

    def _track_from_dto(
        self, album_id: str, source: Source, dto: TrackDTO, track_number: int
    ) -> Track:
        return Track(
            id=str(uuid.uuid4()),
            album_id=album_id,
            title=dto.title.strip(),
            track_number=track_number,
            position=normalize_position(dto.position).normalized,
            duration_ms=dto.duration_ms,
            musicbrainz_id=dto.id if source == Source.MUSICBRAINZ else None,
            spotify_id=dto.id if source == Source.SPOTIFY else None,
            spotify_uri=dto.uri if source == Source.SPOTIFY else None,
        )

    @staticmethod
    def _matches_existing(candidate: Track, existing: Track) -> bool:
        if candidate.musicbrainz_id and candidate.musicbrainz_id == existing.musicbrainz_id:
            return True
        if candidate.spotify_id and candidate.spotify_id == existing.spotify_id:
            return True
        if candidate.position and candidate.position == existing.position:
            return True
        return (
            _title_key(candidate.title) == _title_key(existing.title)
            and candidate.track_number == existing.track_number
        )

    async def _insert_tracks(
        self,
        album: CanonicalAlbum,
        source: Source,
        release: ReleaseDTO,
        existing_tracks: list[Track],
    ) -> int:
        dtos = [dto for dto in release.tracks if dto.title and dto.title.strip()]
        numbers = assign_track_numbers([dto.position for dto in dtos])

        inserted = 0
        for dto, track_number in zip(dtos, numbers, strict=True):
            track = self._track_from_dto(album.id, source, dto, track_number)
            if any(self._matches_existing(track, old) for old in existing_tracks):
                continue
            stored, created = await self._tracks.insert_if_absent(track)
            if created:
                inserted += 1
            elif stored.album_id != album.id:
                logger.warning(
                    f"Track {source.value}:{dto.id} already belongs to album {stored.album_id}, "
                    f"not adding it to {album.id}"
                )
        return inserted

    # Listen up, one broken track must never sink the whole album. Each position update is
    # tried on its own, failures are logged and the rest carry on.
    async def _backfill_positions(
        self, existing_tracks: list[Track], source: Source, release: ReleaseDTO
    ) -> int:
        missing = [track for track in existing_tracks if not track.position]
        if not missing:
            return 0

        by_id: dict[str, TrackDTO] = {}
        by_title: dict[str, TrackDTO] = {}
        for dto in release.tracks:
            if not dto.position:
                continue
            if dto.id:
                by_id.setdefault(dto.id, dto)
            by_title.setdefault(_title_key(dto.title), dto)

        updated = 0
        for track in missing:
            track_ext_id = (
                track.musicbrainz_id if source == Source.MUSICBRAINZ else track.spotify_id
            )
            dto = by_id.get(track_ext_id or "") or by_title.get(_title_key(track.title))
            if dto is None:
                continue
            position = normalize_position(dto.position).normalized
            try:
                await self._tracks.update_position(track.id, position)
            except StorageError as e:
                logger.warning(f"Failed to backfill position for track {track.id}: {e}")
                continue
            updated += 1

        if updated:
            logger.info(f"Backfilled {updated} track positions from {source.value}:{release.id}")
        return updated

    async def _fill_album_metadata(
        self, album: CanonicalAlbum, source: Source, release: ReleaseDTO
    ) -> None:
        values: dict[str, Any] = {
            "release_date": release.release_date,
            "genres": list(release.genres),
            _URL_FIELDS[source]: release.url,
        }
        if not album.cover_art_url:
            values["cover_art_url"] = await self._artwork.find_album_cover(release)
        if not await self._tracks.count_by_album(album.id):
            values["total_tracks"] = release.total_tracks
        await self._albums.fill_missing(album.id, **values)

    async def get_or_create_album(
        self,
        external_id: str | None = None,
        *,
        musicbrainz_id: str | None = None,
        discogs_id: str | None = None,
        spotify_id: str | None = None,
    ) -> CanonicalAlbum:
        """Existing canonical album for any of the ids, else index from the first source that works.

        Args:
            external_id: Unlabelled id, classified by shape (UUID, digits, anything else)
            musicbrainz_id: MusicBrainz release or release-group id
            discogs_id: Discogs release id
            spotify_id: Spotify album id

        Raises:
            ValidationError: No id given
            NotFoundUpstreamError / SourceUnavailableError: Every source failed (last error)
        """
        ids = _collect_ids(external_id, musicbrainz_id, discogs_id, spotify_id)

        for source, value in ids:
            existing = await self._resolver.find_by_source_id(value, source)
            if existing is not None:
                return existing

        last_error: DomainException | None = None
        for source, value in ids:
            try:
                return await self.index_album(source, value)
            except (NotFoundUpstreamError, SourceUnavailableError, ConfigurationError) as e:
                logger.warning(f"Could not index album {source.value}:{value}: {e}")
                last_error = e

        assert last_error is not None
        raise last_error

    async def resolve_id_to_canonical_id(
        self, external_id: str, source: Source | None = None
    ) -> str | None:
        return await self._resolver.resolve_id_to_canonical_id(external_id, source)

    # =========================================================================
    # Artists
    # =========================================================================

    async def index_artist(self, source: Source, external_id: str) -> CanonicalArtist:
        """Fetch, resolve and store one artist.

        Raises:
            NotFoundUpstreamError: The source has no such artist
        """
        try:
            artist = await self._index_artist(source, external_id)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        refreshed = await self._artists.get_by_id(artist.id)
        return refreshed or artist

    async def _index_artist(self, source: Source, external_id: str) -> CanonicalArtist:
        existing = await self._resolver.find_artist_by_source_id(external_id, source)
        if existing is not None and existing.image_url:
            return existing

        adapter = self._sources.get(source)
        dto = await adapter.get_artist(external_id)
        if dto is None:
            raise NotFoundUpstreamError(source.value, external_id)

        if existing is not None:
            artist = existing
        else:
            artist = await self._resolve_or_create_artist(source, dto)

        values: dict[str, Any] = {"genres": list(dto.genres), _URL_FIELDS[source]: dto.url}
        if not artist.image_url:
            values["image_url"] = await self._artwork.find_artist_image(dto)
        await self._artists.fill_missing(artist.id, **values)

        logger.info(f"Indexed artist {source.value}:{external_id} -> {artist.id} ('{dto.name}')")
        return artist

    async def _resolve_or_create_artist(self, source: Source, dto: ArtistDTO) -> CanonicalArtist:
        canonical_id = await self._resolver.ensure_artist_source_ids(dto.id, source, dto.name)
        if canonical_id is not None:
            artist = await self._artists.get_by_id(canonical_id)
            if artist is None:
                raise EntityNotFoundException("Artist", canonical_id)
            return artist

        external_ids = ExternalIds()
        external_ids.set(source, dto.id)
        candidate = CanonicalArtist(
            id=str(uuid.uuid4()),
            name=dto.name.strip(),
            image_url=dto.image_url,
            genres=list(dto.genres),
            external_ids=external_ids,
        )
        setattr(candidate, _URL_FIELDS[source], dto.url)
        artist, _ = await self._artists.insert_if_absent(candidate, source)
        return artist

    async def get_or_create_artist(
        self,
        external_id: str | None = None,
        *,
        musicbrainz_id: str | None = None,
        discogs_id: str | None = None,
        spotify_id: str | None = None,
    ) -> CanonicalArtist:
        """Artist counterpart of get_or_create_album."""
        ids = _collect_ids(external_id, musicbrainz_id, discogs_id, spotify_id)

        for source, value in ids:
            existing = await self._resolver.find_artist_by_source_id(value, source)
            if existing is not None:
                return existing

        last_error: DomainException | None = None
        for source, value in ids:
            try:
                return await self.index_artist(source, value)
            except (NotFoundUpstreamError, SourceUnavailableError, ConfigurationError) as e:
                logger.warning(f"Could not index artist {source.value}:{value}: {e}")
                last_error = e

        assert last_error is not None
        raise last_error

    async def index_artist_releases(
        self, artist: CanonicalArtist, max_releases: int | None = None
    ) -> list[CanonicalAlbum]:
        """Run every release the sources know for this artist through the album indexer.

        One failing release is logged and skipped, the expansion carries on.
        """
        albums: list[CanonicalAlbum] = []
        for source, artist_ext_id in artist.external_ids.present().items():
            adapter = self._sources.find(source)
            if adapter is None:
                continue
            try:
                dto = await adapter.get_artist(artist_ext_id)
            except DomainException as e:
                logger.warning(f"Could not fetch artist {source.value}:{artist_ext_id}: {e}")
                continue
            if dto is None:
                continue

            release_ids = dto.release_ids[:max_releases] if max_releases else dto.release_ids
            for release_id in release_ids:
                try:
                    albums.append(await self.index_album(source, release_id))
                except DomainException as e:
                    logger.warning(
                        f"Skipping release {source.value}:{release_id} of '{artist.name}': {e}"
                    )

        logger.info(f"Expanded artist '{artist.name}' into {len(albums)} albums")
        return albums
