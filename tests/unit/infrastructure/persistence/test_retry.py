"""Tests for storage error translation and lock retry."""

from unittest.mock import AsyncMock

import pytest
from pytest_mock import MockerFixture
from sqlalchemy.exc import IntegrityError, OperationalError

from recordhub.domain.exceptions import StorageError
from recordhub.infrastructure.persistence.retry import is_lock_error, translate_storage_errors


def _locked() -> OperationalError:
    return OperationalError("UPDATE albums", {}, Exception("database is locked"))


class TestIsLockError:
    def test_detects_locked_and_busy(self) -> None:
        assert is_lock_error(_locked())
        assert is_lock_error(OperationalError("x", {}, Exception("database is busy")))

    def test_other_errors_are_not_retryable(self) -> None:
        assert not is_lock_error(OperationalError("x", {}, Exception("no such table")))
        assert not is_lock_error(ValueError("locked"))


class TestTranslateStorageErrors:
    async def test_lock_error_is_retried(self, mocker: MockerFixture) -> None:
        sleep = mocker.patch(
            "recordhub.infrastructure.persistence.retry.asyncio.sleep", new_callable=AsyncMock
        )
        calls = AsyncMock(side_effect=[_locked(), "ok"])

        @translate_storage_errors(initial_delay=0.1)
        async def write() -> str:
            return await calls()

        assert await write() == "ok"
        sleep.assert_awaited_once_with(0.1)

    async def test_exhausted_lock_retries_raise_storage_error(self, mocker: MockerFixture) -> None:
        mocker.patch(
            "recordhub.infrastructure.persistence.retry.asyncio.sleep", new_callable=AsyncMock
        )

        @translate_storage_errors(max_attempts=2)
        async def write() -> None:
            raise _locked()

        with pytest.raises(StorageError) as exc_info:
            await write()
        assert isinstance(exc_info.value.__cause__, OperationalError)

    async def test_other_sqlalchemy_errors_are_wrapped(self) -> None:
        @translate_storage_errors()
        async def insert() -> None:
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(StorageError, match="insert failed"):
            await insert()

    async def test_domain_errors_pass_through(self) -> None:
        @translate_storage_errors()
        async def lookup() -> None:
            raise ValueError("not storage")

        with pytest.raises(ValueError):
            await lookup()
