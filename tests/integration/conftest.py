"""Integration fixtures: the full app on an in-memory database with fake sources."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from recordhub.application.sources.registry import MetadataSourceRegistry
from recordhub.config import Settings
from recordhub.main import create_app


@pytest.fixture
def client(
    settings: Settings, sources: MetadataSourceRegistry
) -> Generator[TestClient, None, None]:
    """TestClient with the lifespan running (tables created, worker disabled)."""
    app = create_app(settings=settings, sources=sources)
    with TestClient(app) as test_client:
        yield test_client
