"""Infrastructure layer: persistence, external clients, observability."""
