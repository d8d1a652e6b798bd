"""Application services."""

from recordhub.application.services.artwork_service import ArtworkService
from recordhub.application.services.catalog_indexer import CatalogIndexer, classify_external_id
from recordhub.application.services.catalog_merge_service import (
    CatalogMergeService,
    DedupeReport,
    MergeResult,
)
from recordhub.application.services.identity_resolver import IdentityResolver
from recordhub.application.services.reindex_service import ReindexReport, ReindexService
from recordhub.application.services.track_maintenance import (
    TrackCleanupResult,
    TrackMaintenanceService,
)

__all__ = [
    "ArtworkService",
    "CatalogIndexer",
    "CatalogMergeService",
    "DedupeReport",
    "IdentityResolver",
    "MergeResult",
    "ReindexReport",
    "ReindexService",
    "TrackCleanupResult",
    "TrackMaintenanceService",
    "classify_external_id",
]
