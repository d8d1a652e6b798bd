"""Canonical album endpoints."""

import logging

from fastapi import APIRouter, Depends, Query

from recordhub.api.dependencies import get_catalog_indexer, get_track_repository
from recordhub.api.schemas import AlbumResponse, ExternalIdsRequest, ResolveResponse
from recordhub.application.services.catalog_indexer import CatalogIndexer
from recordhub.domain.entities import Source
from recordhub.domain.exceptions import (
    ConfigurationError,
    EntityNotFoundException,
    NotFoundUpstreamError,
    SourceUnavailableError,
)
from recordhub.infrastructure.persistence.repositories import TrackRepository

router = APIRouter()
logger = logging.getLogger(__name__)


# Declared before /{source}/{external_id}, both are two path segments
@router.get("/resolve/{external_id}", response_model=ResolveResponse)
async def resolve_album_id(
    external_id: str,
    source: Source | None = Query(None, description="Restrict to one source's id column"),
    indexer: CatalogIndexer = Depends(get_catalog_indexer),
) -> ResolveResponse:
    """Map an external id to the canonical album id without indexing anything."""
    album_id = await indexer.resolve_id_to_canonical_id(external_id, source)
    if album_id is None:
        raise EntityNotFoundException("Album", external_id)
    return ResolveResponse(
        external_id=external_id, source=source.value if source else None, album_id=album_id
    )


# Hey future me - this is the album PAGE path. It indexes on demand, but a failed index must
# never hide what we already have: if the source is down or 404s and a canonical album exists,
# it comes back with metadata_available=false instead of an error.
@router.get("/{source}/{external_id}", response_model=AlbumResponse)
async def get_album_by_source_id(
    source: Source,
    external_id: str,
    indexer: CatalogIndexer = Depends(get_catalog_indexer),
    tracks: TrackRepository = Depends(get_track_repository),
) -> AlbumResponse:
    try:
        album = await indexer.index_album(source, external_id)
    except (NotFoundUpstreamError, SourceUnavailableError, ConfigurationError) as e:
        existing = await indexer.resolver.find_by_source_id(external_id, source)
        if existing is None:
            raise
        logger.warning(
            f"On-demand index of {source.value}:{external_id} failed, serving stored album: {e}"
        )
        return AlbumResponse.from_entity(
            existing, await tracks.list_by_album(existing.id), metadata_available=False
        )

    return AlbumResponse.from_entity(album, await tracks.list_by_album(album.id))


@router.get("/{album_id}", response_model=AlbumResponse)
async def get_album(
    album_id: str,
    indexer: CatalogIndexer = Depends(get_catalog_indexer),
    tracks: TrackRepository = Depends(get_track_repository),
) -> AlbumResponse:
    album = await indexer.resolver.get_album(album_id)
    if album is None:
        raise EntityNotFoundException("Album", album_id)
    return AlbumResponse.from_entity(album, await tracks.list_by_album(album.id))


@router.post("", response_model=AlbumResponse)
async def get_or_create_album(
    request: ExternalIdsRequest,
    indexer: CatalogIndexer = Depends(get_catalog_indexer),
    tracks: TrackRepository = Depends(get_track_repository),
) -> AlbumResponse:
    """Existing album for any of the ids, else index from the first source that has it."""
    album = await indexer.get_or_create_album(
        request.external_id,
        musicbrainz_id=request.musicbrainz_id,
        discogs_id=request.discogs_id,
        spotify_id=request.spotify_id,
    )
    return AlbumResponse.from_entity(album, await tracks.list_by_album(album.id))
