"""Registry of metadata sources.

Hey future me - the indexer and the reindexer never construct clients themselves. They ask the
registry for "the adapter for Source.DISCOGS" or "every other source, in priority order".
Register adapters once at startup (see build_default_registry) and hand the registry around.
Tests register fakes.
"""

import logging

from recordhub.domain.entities import Source
from recordhub.domain.exceptions import ConfigurationError
from recordhub.domain.ports import IMetadataSource

logger = logging.getLogger(__name__)


class MetadataSourceRegistry:
    """Holds one IMetadataSource per Source."""

    def __init__(self, sources: list[IMetadataSource] | None = None) -> None:
        self._sources: dict[Source, IMetadataSource] = {}
        for source in sources or []:
            self.register(source)

    def register(self, source: IMetadataSource) -> None:
        self._sources[source.source] = source
        logger.debug(f"Registered metadata source: {source.source.value}")

    def find(self, source: Source) -> IMetadataSource | None:
        return self._sources.get(source)

    def get(self, source: Source) -> IMetadataSource:
        """Get the adapter for a source.

        Raises:
            ConfigurationError: If no adapter is registered for it
        """
        adapter = self._sources.get(source)
        if adapter is None:
            raise ConfigurationError(f"No metadata source registered for {source.value}")
        return adapter

    def in_priority_order(self) -> list[IMetadataSource]:
        """Registered adapters, native source first."""
        return [self._sources[s] for s in Source.in_priority_order() if s in self._sources]

    def fallbacks_for(self, source: Source) -> list[IMetadataSource]:
        """Every other registered adapter, in priority order."""
        return [adapter for adapter in self.in_priority_order() if adapter.source != source]

    def __contains__(self, source: object) -> bool:
        return source in self._sources

    async def close(self) -> None:
        for adapter in self._sources.values():
            await adapter.close()
