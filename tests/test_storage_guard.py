"""
Storage guard: timeouts, bounded retries and driver error translation.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest
from pymongo.errors import (
    AutoReconnect,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from debt_ledger.core.config import settings
from debt_ledger.core.errors import (
    ConcurrencyConflictError,
    StorageTimeoutError,
    StorageUnavailableError,
)
from debt_ledger.db.guard import guarded_call, storage_call, translate_error


def transient_conflict():
    return OperationFailure(
        "WriteConflict",
        code=112,
        details={"errorLabels": ["TransientTransactionError"]}
    )


@pytest.mark.asyncio
async def test_idempotent_call_retried_after_reconnect():
    call = AsyncMock(side_effect=[AutoReconnect("primary stepped down"), "ok"])

    result = await guarded_call(call, "read", idempotent=True, attempts=3)

    assert result == "ok"
    assert call.await_count == 2


@pytest.mark.asyncio
async def test_non_idempotent_call_not_retried_after_reconnect():
    call = AsyncMock(side_effect=AutoReconnect("connection reset"))

    with pytest.raises(StorageUnavailableError):
        await guarded_call(call, "increment", idempotent=False, attempts=3)

    assert call.await_count == 1


@pytest.mark.asyncio
async def test_non_idempotent_call_retried_when_no_server_was_selected():
    call = AsyncMock(side_effect=[ServerSelectionTimeoutError("no primary"), "ok"])

    result = await guarded_call(call, "increment", idempotent=False, attempts=3)

    assert result == "ok"
    assert call.await_count == 2


@pytest.mark.asyncio
async def test_timeout_becomes_storage_timeout_after_bounded_attempts():
    attempts = []

    async def slow():
        attempts.append(1)
        await asyncio.sleep(1)

    with pytest.raises(StorageTimeoutError) as exc_info:
        await guarded_call(slow, "list", idempotent=True, attempts=2, timeout=0.01)

    assert len(attempts) == 2
    assert exc_info.value.details["operation"] == "list"
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_business_driver_errors_are_not_retried_or_translated():
    call = AsyncMock(side_effect=DuplicateKeyError("E11000 duplicate key"))

    with pytest.raises(DuplicateKeyError):
        await guarded_call(call, "insert", idempotent=True, attempts=3)

    assert call.await_count == 1


@pytest.mark.asyncio
async def test_transient_transaction_error_becomes_conflict():
    call = AsyncMock(side_effect=transient_conflict())

    with pytest.raises(ConcurrencyConflictError):
        await guarded_call(call, "payment", idempotent=False, attempts=2)

    assert call.await_count == 2


@pytest.mark.asyncio
async def test_retry_bound_follows_settings(monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_RETRY_ATTEMPTS", 4)
    call = AsyncMock(side_effect=AutoReconnect("primary stepped down"))

    with pytest.raises(StorageUnavailableError) as exc_info:
        await guarded_call(call, "read")

    assert call.await_count == 4
    assert isinstance(exc_info.value.__cause__, AutoReconnect)


@pytest.mark.asyncio
async def test_storage_call_decorator_passes_arguments():
    class Repo:
        def __init__(self):
            self.calls = 0

        @storage_call()
        async def fetch(self, key, suffix=""):
            self.calls += 1
            if self.calls == 1:
                raise AutoReconnect("blip")
            return key + suffix

    repo = Repo()
    assert await repo.fetch("a", suffix="b") == "ab"
    assert repo.calls == 2


def test_translate_error():
    assert isinstance(translate_error(asyncio.TimeoutError(), "op"), StorageTimeoutError)
    assert isinstance(translate_error(AutoReconnect("x"), "op"), StorageUnavailableError)
    assert isinstance(translate_error(transient_conflict(), "op"), ConcurrencyConflictError)

    other = ValueError("not a driver error")
    assert translate_error(other, "op") is other
