"""
Storage guard - timeouts, bounded retries and error translation.

Every call into MongoDB goes through ``guarded_call`` (or the ``storage_call``
decorator on repository methods):

- the call is bounded by STORAGE_TIMEOUT_SECONDS
- driver errors are translated to StorageTimeoutError / StorageUnavailableError
- idempotent calls (reads, $set restatements) are retried on any transient failure
- non-idempotent writes are retried only when the request never reached a
  server (server selection failed), since a timed-out $inc may have applied
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    ExecutionTimeout,
    NetworkTimeout,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
    WTimeoutError,
)
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from debt_ledger.core.config import settings
from debt_ledger.core.errors import (
    ConcurrencyConflictError,
    StorageTimeoutError,
    StorageUnavailableError,
)
from debt_ledger.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_TRANSACTION_LABEL = "TransientTransactionError"


def translate_error(exc: BaseException, operation: str) -> Exception:
    """Map a driver exception to the ledger error taxonomy."""
    if isinstance(exc, (asyncio.TimeoutError, ServerSelectionTimeoutError, NetworkTimeout,
                        ExecutionTimeout, WTimeoutError)):
        return StorageTimeoutError(f"Storage timed out during {operation}", operation=operation)
    if isinstance(exc, PyMongoError) and exc.has_error_label(TRANSIENT_TRANSACTION_LABEL):
        return ConcurrencyConflictError(
            f"Write conflict during {operation}; retry the request",
            operation=operation
        )
    if isinstance(exc, (AutoReconnect, ConnectionFailure)):
        return StorageUnavailableError(f"Storage unavailable during {operation}", operation=operation)
    return exc


def _is_business_error(exc: BaseException) -> bool:
    """Driver errors about the request itself (duplicate keys, bad queries)."""
    return isinstance(exc, OperationFailure) \
        and not isinstance(exc, (ExecutionTimeout, WTimeoutError)) \
        and not exc.has_error_label(TRANSIENT_TRANSACTION_LABEL)


def _is_retryable(exc: BaseException, idempotent: bool) -> bool:
    if _is_business_error(exc):
        return False
    if isinstance(exc, ServerSelectionTimeoutError):
        # Nothing was sent to a server
        return True
    if isinstance(exc, PyMongoError) and exc.has_error_label(TRANSIENT_TRANSACTION_LABEL):
        return True
    if not idempotent:
        return False
    return isinstance(exc, (asyncio.TimeoutError, AutoReconnect, ConnectionFailure,
                            NetworkTimeout, ExecutionTimeout))


def _log_retry(operation: str) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        logger.warning(
            "storage_retry",
            operation=operation,
            attempt=retry_state.attempt_number,
            error=type(retry_state.outcome.exception()).__name__,
        )

    return log


async def guarded_call(
    call: Callable[[], Awaitable[T]],
    operation: str,
    idempotent: bool = True,
    attempts: Optional[int] = None,
    timeout: Optional[float] = None,
) -> T:
    """Run a storage coroutine factory with timeout, retries and error translation."""
    timeout = timeout if timeout is not None else settings.STORAGE_TIMEOUT_SECONDS
    retrying = AsyncRetrying(
        retry=retry_if_exception(lambda exc: _is_retryable(exc, idempotent)),
        stop=stop_after_attempt(attempts or settings.STORAGE_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=settings.STORAGE_RETRY_BACKOFF_SECONDS, max=2),
        before_sleep=_log_retry(operation),
        reraise=True,
    )

    async def attempt() -> T:
        return await asyncio.wait_for(call(), timeout)

    try:
        return await retrying(attempt)
    except (asyncio.TimeoutError, PyMongoError) as exc:
        if _is_business_error(exc):
            raise
        logger.error("storage_failure", operation=operation, error=type(exc).__name__)
        raise translate_error(exc, operation) from exc


def storage_call(idempotent: bool = True):
    """Decorator for repository coroutines; see ``guarded_call``."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        operation = func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await guarded_call(
                lambda: func(*args, **kwargs),
                operation=operation,
                idempotent=idempotent,
            )

        return wrapper

    return decorator
