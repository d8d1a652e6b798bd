"""API request/response schemas."""

from recordhub.api.schemas.catalog import (
    AlbumResponse,
    ArtistResponse,
    ExternalIdsRequest,
    ReindexRequest,
    ResolveResponse,
    TrackResponse,
)

__all__ = [
    "AlbumResponse",
    "ArtistResponse",
    "ExternalIdsRequest",
    "ReindexRequest",
    "ResolveResponse",
    "TrackResponse",
]
