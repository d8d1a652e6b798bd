# =============================================================================
# Hey future me - every repository method goes through translate_storage_errors!
#
# Two jobs:
# 1. SQLite "database is locked" is TEMPORARY (one writer at a time, the reindexer and
#    interactive requests write concurrently). Wait and retry with exponential backoff.
# 2. Anything else from SQLAlchemy becomes StorageError, so services and the API never
#    have to import sqlalchemy.exc.
#
# USAGE:
#   @translate_storage_errors()
#   async def get_by_id(self, album_id: str) -> CanonicalAlbum | None:
#       ...
# =============================================================================
"""Storage error translation and lock retry for repositories."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from recordhub.domain.exceptions import StorageError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def is_lock_error(exception: Exception) -> bool:
    """Check if an exception is a retryable database lock error."""
    if not isinstance(exception, OperationalError):
        return False
    error_msg = str(exception).lower()
    return "locked" in error_msg or "busy" in error_msg


def translate_storage_errors(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry lock errors, wrap every other SQLAlchemy error into StorageError.

    Args:
        max_attempts: Maximum attempts for lock errors (default: 3)
        initial_delay: First backoff delay in seconds
        max_delay: Backoff cap in seconds
        backoff_factor: Delay multiplier per retry

    Returns:
        Decorator for async repository methods.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            delay = initial_delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except SQLAlchemyError as e:
                    if is_lock_error(e) and attempt < max_attempts:
                        logger.warning(
                            "Database locked (attempt %d/%d), retrying in %.1fs: %s",
                            attempt,
                            max_attempts,
                            delay,
                            func.__qualname__,
                        )
                        await asyncio.sleep(delay)
                        delay = min(delay * backoff_factor, max_delay)
                        continue
                    logger.error("Storage failure in %s: %s", func.__qualname__, e)
                    raise StorageError(f"{func.__qualname__} failed: {e}") from e
            raise StorageError(f"{func.__qualname__} failed after {max_attempts} attempts")

        return wrapper

    return decorator
