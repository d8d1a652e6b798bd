"""Dependency injection for API endpoints."""

import logging
from collections.abc import AsyncGenerator
from typing import cast

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.application.services.catalog_indexer import CatalogIndexer
from recordhub.application.services.catalog_merge_service import CatalogMergeService
from recordhub.application.services.reindex_service import ReindexService
from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.config import Settings, get_settings
from recordhub.infrastructure.persistence.database import Database
from recordhub.infrastructure.persistence.repositories import TrackRepository

logger = logging.getLogger(__name__)


# Hey future me - one session per request via session_scope(), it commits on success and rolls
# back on error. The services commit their own units of work on top of that, which is fine.
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    db: Database = request.app.state.db
    async with db.session_scope() as session:
        yield session


def get_source_registry(request: Request) -> MetadataSourceRegistry:
    """Metadata sources built during startup.

    Raises:
        HTTPException: 503 if startup didn't finish
    """
    if not hasattr(request.app.state, "sources"):
        raise HTTPException(status_code=503, detail="Metadata sources not initialized")
    return cast(MetadataSourceRegistry, request.app.state.sources)


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with, the environment otherwise."""
    settings = getattr(request.app.state, "settings", None)
    return cast(Settings, settings) if settings is not None else get_settings()


def get_catalog_indexer(
    session: AsyncSession = Depends(get_db_session),
    sources: MetadataSourceRegistry = Depends(get_source_registry),
    settings: Settings = Depends(get_app_settings),
) -> CatalogIndexer:
    return CatalogIndexer(session, sources, settings.reindexer)


def get_reindex_service(
    session: AsyncSession = Depends(get_db_session),
    sources: MetadataSourceRegistry = Depends(get_source_registry),
    settings: Settings = Depends(get_app_settings),
) -> ReindexService:
    return ReindexService(session, sources, settings.reindexer)


def get_merge_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> CatalogMergeService:
    return CatalogMergeService(session, settings.reindexer)


def get_track_repository(session: AsyncSession = Depends(get_db_session)) -> TrackRepository:
    return TrackRepository(session)
