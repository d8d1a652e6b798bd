"""Canonical artist endpoints."""

import logging

from fastapi import APIRouter, Depends

from recordhub.api.dependencies import get_catalog_indexer
from recordhub.api.schemas import AlbumResponse, ArtistResponse, ExternalIdsRequest
from recordhub.application.services.catalog_indexer import CatalogIndexer
from recordhub.domain.entities import Source
from recordhub.domain.exceptions import EntityNotFoundException

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{source}/{external_id}", response_model=ArtistResponse)
async def get_artist_by_source_id(
    source: Source,
    external_id: str,
    indexer: CatalogIndexer = Depends(get_catalog_indexer),
) -> ArtistResponse:
    """Index (or re-read) an artist from one source."""
    artist = await indexer.index_artist(source, external_id)
    return ArtistResponse.from_entity(artist)


@router.get("/{artist_id}", response_model=ArtistResponse)
async def get_artist(
    artist_id: str,
    indexer: CatalogIndexer = Depends(get_catalog_indexer),
) -> ArtistResponse:
    artist = await indexer.resolver.get_artist(artist_id)
    if artist is None:
        raise EntityNotFoundException("Artist", artist_id)
    return ArtistResponse.from_entity(artist)


@router.post("", response_model=ArtistResponse)
async def get_or_create_artist(
    request: ExternalIdsRequest,
    indexer: CatalogIndexer = Depends(get_catalog_indexer),
) -> ArtistResponse:
    artist = await indexer.get_or_create_artist(
        request.external_id,
        musicbrainz_id=request.musicbrainz_id,
        discogs_id=request.discogs_id,
        spotify_id=request.spotify_id,
    )
    return ArtistResponse.from_entity(artist)


# Yo, this can take a while: every release the sources know for the artist goes through the
# indexer (rate limited). Failing releases are skipped, not fatal.
@router.post("/{artist_id}/releases", response_model=list[AlbumResponse])
async def index_artist_releases(
    artist_id: str,
    indexer: CatalogIndexer = Depends(get_catalog_indexer),
) -> list[AlbumResponse]:
    artist = await indexer.resolver.get_artist(artist_id)
    if artist is None:
        raise EntityNotFoundException("Artist", artist_id)
    albums = await indexer.index_artist_releases(artist)
    return [AlbumResponse.from_entity(album) for album in albums]
