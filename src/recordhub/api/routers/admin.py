"""Operator endpoints: reindex trigger, album dedupe, worker status."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from recordhub.api.dependencies import get_merge_service, get_reindex_service
from recordhub.api.schemas import ReindexRequest
from recordhub.application.services.catalog_merge_service import CatalogMergeService
from recordhub.application.services.reindex_service import ReindexService

router = APIRouter()
logger = logging.getLogger(__name__)


# Hey future me - this is the same code path the background worker runs, just on demand and
# with the operator's options. dry_run only lists the candidates, nothing is fetched or written.
@router.post("/reindex")
async def trigger_reindex(
    request: ReindexRequest,
    service: ReindexService = Depends(get_reindex_service),
) -> dict[str, Any]:
    if request.target == "albums":
        options: dict[str, Any] = {
            "limit": request.limit,
            "offset": request.offset,
            "only_missing_tracks": request.only_missing_tracks,
            "dry_run": request.dry_run,
            "search_fallback": request.search_fallback,
        }
    elif request.target == "artists":
        options = {"limit": request.limit, "dry_run": request.dry_run}
    elif request.target == "artist_names":
        options = {"dry_run": request.dry_run}
    else:
        options = {"album_id": request.album_id, "dry_run": request.dry_run}

    logger.info(f"Admin reindex triggered: target={request.target} options={options}")
    report = await service.trigger(request.target, **options)
    return report.to_dict()


@router.post("/dedupe-albums")
async def dedupe_albums(
    dry_run: bool = Query(False, description="Only report clusters, merge nothing"),
    service: CatalogMergeService = Depends(get_merge_service),
) -> dict[str, Any]:
    report = await service.dedupe_albums(dry_run=dry_run)
    return report.to_dict()


@router.get("/reindex/status")
async def reindex_status(request: Request) -> dict[str, Any]:
    worker = getattr(request.app.state, "reindex_worker", None)
    if worker is None:
        return {"running": False, "enabled": False}
    return {"enabled": True, **worker.get_stats()}
