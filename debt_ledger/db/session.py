"""
Unit of work for paired ledger writes.

An expense insert and its balance increment, or a balance decrement and its
payment record, must commit together. With MONGODB_TRANSACTIONS enabled the
block runs inside a MongoDB multi-document transaction. Without a replica
set, each step registers a compensating write and the compensations run in
reverse order when the block raises.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from debt_ledger.core.config import settings
from debt_ledger.core.errors import ConcurrencyConflictError
from debt_ledger.core.logging import get_logger
from debt_ledger.db.guard import translate_error

logger = get_logger(__name__)


class UnitOfWork:
    """Handle passed to a unit-of-work block."""

    def __init__(self, session: Any = None):
        self.session = session
        self._compensations: List[Callable[[], Awaitable[Any]]] = []

    @property
    def transactional(self) -> bool:
        return self.session is not None

    def on_rollback(self, compensation: Callable[[], Awaitable[Any]]) -> None:
        """Register an undo step; ignored when a real transaction is active."""
        if not self.transactional:
            self._compensations.append(compensation)

    async def compensate(self) -> None:
        for compensation in reversed(self._compensations):
            try:
                await compensation()
            except Exception as exc:
                # Leave the drift for reconciliation but make it visible
                logger.error("compensation_failed", error=repr(exc))
        self._compensations.clear()


@asynccontextmanager
async def unit_of_work(
    db: AsyncIOMotorDatabase,
    use_transactions: Optional[bool] = None,
) -> AsyncIterator[UnitOfWork]:
    """Open a unit of work; see module docstring."""
    if use_transactions is None:
        use_transactions = settings.MONGODB_TRANSACTIONS

    if not use_transactions:
        uow = UnitOfWork()
        try:
            yield uow
        except BaseException:
            await uow.compensate()
            raise
        return

    try:
        async with await db.client.start_session() as session:
            async with session.start_transaction():
                yield UnitOfWork(session)
    except PyMongoError as exc:
        raise translate_error(exc, "unit_of_work") from exc


async def retry_on_conflict(
    block: Callable[[], Awaitable[Any]],
    attempts: Optional[int] = None,
) -> Any:
    """Re-run a whole unit of work when its transaction was aborted by a write conflict."""
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(ConcurrencyConflictError),
        stop=stop_after_attempt(attempts or settings.STORAGE_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=settings.STORAGE_RETRY_BACKOFF_SECONDS, max=2),
        before_sleep=lambda state: logger.warning("unit_of_work_retry", attempt=state.attempt_number),
        reraise=True,
    )
    return await retrying(block)
