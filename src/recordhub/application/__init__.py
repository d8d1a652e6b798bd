"""Application layer: sources, services and workers."""
