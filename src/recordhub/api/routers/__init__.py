"""API routers."""

from fastapi import APIRouter

from recordhub.api.routers import admin, albums, artists

api_router = APIRouter()
api_router.include_router(albums.router, prefix="/albums", tags=["Albums"])
api_router.include_router(artists.router, prefix="/artists", tags=["Artists"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

__all__ = ["api_router"]
