"""HTTP API layer."""

from recordhub.api.routers import api_router

__all__ = ["api_router"]
