"""Exception handlers mapping domain errors to HTTP responses.

Hey future me - routes just raise domain exceptions and these turn them into status codes:

    EntityNotFoundException, NotFoundUpstreamError  -> 404
    ValidationError                                 -> 400
    ConfigurationError                              -> 503 (source not configured)
    SourceUnavailableError                          -> 502 (upstream broke, not us)
    StorageError                                    -> 500
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from recordhub.domain.exceptions import (
    ConfigurationError,
    EntityNotFoundException,
    NotFoundUpstreamError,
    SourceUnavailableError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _sanitize(value: Any) -> Any:
    # Pydantic can put the raw body (bytes) into errors, which JSONResponse can't serialize
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, dict):
        return {key: _sanitize(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_sanitize(item) for item in value]
    return value


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for domain and request validation exceptions."""

    @app.exception_handler(EntityNotFoundException)
    async def entity_not_found_handler(
        request: Request, exc: EntityNotFoundException
    ) -> JSONResponse:
        logger.info(f"Entity not found at {request.url.path}: {exc.entity_type} {exc.entity_id}")
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

    @app.exception_handler(NotFoundUpstreamError)
    async def not_found_upstream_handler(
        request: Request, exc: NotFoundUpstreamError
    ) -> JSONResponse:
        logger.info(f"Upstream miss at {request.url.path}: {exc.message}")
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning(f"Validation error at {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message}
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.warning(f"Configuration error at {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": exc.message}
        )

    @app.exception_handler(SourceUnavailableError)
    async def source_unavailable_handler(
        request: Request, exc: SourceUnavailableError
    ) -> JSONResponse:
        logger.warning(f"Source unavailable at {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": exc.message}
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(f"Storage error at {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Storage error, please retry"},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = _sanitize(list(exc.errors()))
        logger.warning(f"Request validation error at {request.url.path}: {errors}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": errors}
        )
