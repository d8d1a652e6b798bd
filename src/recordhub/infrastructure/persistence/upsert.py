"""Insert-if-absent primitive.

Hey future me - THIS is the only way canonical rows get created! Select-then-insert races when
the reindexer and an album page request index the same external id at the same moment. Instead
we let the database decide: a conditional insert that is a no-op when the unique key already
exists, then a re-read that returns whichever row won. Callers never need a lock.

SQLite and PostgreSQL get native ON CONFLICT DO NOTHING. Anything else falls back to a
SAVEPOINT around a plain INSERT and treats IntegrityError as "someone else won".
"""

import logging
from typing import Any, TypeVar

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from recordhub.domain.exceptions import StorageError
from recordhub.infrastructure.persistence.models import Base

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

_NATIVE_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


async def upsert_by_unique_key(
    session: AsyncSession,
    model: type[ModelT],
    values: dict[str, Any],
    key: str,
) -> tuple[ModelT, bool]:
    """Insert `values` unless a row with the same `key` value exists.

    Args:
        session: Active session (not committed here)
        model: ORM model class
        values: Column values for the new row, must contain `key`
        key: Name of a unique column

    Returns:
        (row, created) where row is the stored row, ours or the concurrent winner

    Raises:
        StorageError: If the insert conflicted on a different unique column, so no row
            with our key exists to fall back to
    """
    key_value = values[key]
    dialect = session.get_bind().dialect.name
    native_insert = _NATIVE_INSERTS.get(dialect)

    if native_insert is not None:
        stmt = native_insert(model).values(**values).on_conflict_do_nothing()
        result = await session.execute(stmt)
        created = result.rowcount == 1
    else:
        try:
            async with session.begin_nested():
                await session.execute(insert(model).values(**values))
            created = True
        except IntegrityError:
            created = False

    column = getattr(model, key)
    row = await session.scalar(
        select(model).where(column == key_value).execution_options(populate_existing=True)
    )
    if row is None:
        raise StorageError(
            f"Insert into {model.__tablename__} conflicted but no row with {key}={key_value} exists"
        )

    if not created:
        logger.debug(f"{model.__tablename__}: {key}={key_value} already present, reusing row")
    return row, created
