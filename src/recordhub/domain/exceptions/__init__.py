"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is stored as an attribute so handlers can read it without parsing
    # str(exception). Don't raise this directly, use a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when a canonical entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(DomainException):
    """Raised when input data fails validation."""

    pass


class ConfigurationError(DomainException):
    """Raised when a required component is not configured (e.g. missing source credentials)."""

    pass


class NotFoundUpstreamError(DomainException):
    """The external source has no record for the requested id.

    Propagated to the caller and never retried immediately. The background reindexer
    turns it into a scheduled retry.
    """

    def __init__(self, source: str, external_id: str) -> None:
        super().__init__(f"{source} has no record with id {external_id}")
        self.source = source
        self.external_id = external_id


class SourceUnavailableError(DomainException):
    """An external source could not be reached (network, rate limit, HTTP error)."""

    def __init__(self, source: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{source} unavailable: {message}")
        self.source = source
        self.status_code = status_code


class StorageError(DomainException):
    """Persistence layer failure.

    Yo, repositories wrap every SQLAlchemy error into this so services never import
    sqlalchemy.exc. Callers decide whether to retry.
    """

    pass


__all__ = [
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "NotFoundUpstreamError",
    "SourceUnavailableError",
    "StorageError",
    "ValidationError",
]
