"""
Payout stats migration - backfill derived statistics on historical payouts.

The job is safe to re-run at any time:
- candidates are chosen by PayoutStatsRecord.needs_update(), the same
  predicate the status check counts with
- migrated records are never touched again
- records without order numbers can never be migrated; they are counted as
  not_migratable and left out of the candidates
- a candidate that cannot be migrated (orders missing, bad order data,
  storage failure) is skipped and counted; the batch carries on
- a stop request takes effect after the in-flight record finishes
"""

import asyncio
from collections import Counter
from decimal import InvalidOperation
from typing import Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError as ModelValidationError
from pymongo.errors import PyMongoError

from debt_ledger.core.config import settings
from debt_ledger.core.errors import (
    ConcurrencyConflictError,
    LedgerError,
    PartialMigrationError,
    ValidationError,
)
from debt_ledger.core.logging import get_logger
from debt_ledger.models.payout import OrderSummary, PayoutStats, PayoutStatsRecord
from debt_ledger.repositories.order_repo import OrderRepository
from debt_ledger.repositories.payout_repo import PayoutRepository
from debt_ledger.schemas.migration import MigrationResult, MigrationStatus, SkippedPayout
from debt_ledger.utils.money import average_rounded

logger = get_logger(__name__)

# Failures confined to a single record
RECORD_ERRORS = (LedgerError, PyMongoError, InvalidOperation, ModelValidationError)


def _reason(exc: BaseException) -> str:
    return exc.code if isinstance(exc, LedgerError) else type(exc).__name__


def compute_payout_stats(orders: Iterable[OrderSummary]) -> PayoutStats:
    """Derive order count, average check and per-category counts. Deterministic."""
    orders = list(orders)
    per_category = Counter(order.category for order in orders)
    return PayoutStats(
        order_count=len(orders),
        average_check=average_rounded(order.price for order in orders),
        product_type_stats={category: per_category[category] for category in sorted(per_category)}
    )


class MigrationControl:
    """Process-wide run state: one migration at a time, stoppable between records."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> bool:
        """Ask the running migration to stop; False when nothing is running."""
        if not self.running:
            return False
        self._stop.set()
        return True

    async def acquire(self) -> None:
        if self._lock.locked():
            raise ConcurrencyConflictError("A payout migration is already running")
        await self._lock.acquire()
        self._stop.clear()

    def release(self) -> None:
        self._stop.clear()
        self._lock.release()


migration_control = MigrationControl()


class MigrationService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        control: Optional[MigrationControl] = None,
        item_delay: Optional[float] = None,
    ):
        self.payouts = PayoutRepository(db)
        self.orders = OrderRepository(db)
        self.control = control or migration_control
        self.item_delay = settings.MIGRATION_ITEM_DELAY_SECONDS if item_delay is None else item_delay

    async def get_migration_status(self) -> MigrationStatus:
        records = await self.payouts.list_records()
        needs_update = sum(1 for r in records if r.needs_update())
        already_migrated = sum(1 for r in records if r.is_migrated())
        return MigrationStatus(
            total_records=len(records),
            needs_update=needs_update,
            already_migrated=already_migrated,
            not_migratable=len(records) - needs_update - already_migrated,
            ready=needs_update > 0,
            running=self.control.running
        )

    async def migrate_payout_stats(
        self,
        batch_size: Optional[int] = None,
        start_after: Optional[str] = None,
    ) -> MigrationResult:
        """
        Migrate up to batch_size records that need it.

        next_cursor is set when further candidates remain after this batch;
        pass it as start_after to move past records that keep being skipped.
        """
        if batch_size is None:
            batch_size = settings.MIGRATION_DEFAULT_BATCH_SIZE
        if batch_size < 1 or batch_size > settings.MIGRATION_MAX_BATCH_SIZE:
            raise ValidationError(
                f"batch_size must be between 1 and {settings.MIGRATION_MAX_BATCH_SIZE}",
                field="batch_size"
            )

        await self.control.acquire()
        try:
            return await self._run(batch_size, start_after)
        finally:
            self.control.release()

    async def _run(self, batch_size: int, start_after: Optional[str]) -> MigrationResult:
        records = await self.payouts.list_records(start_after)

        candidates: List[PayoutStatsRecord] = []
        not_migratable = 0
        passed_over = 0
        more = False
        for record in records:
            if record.needs_update():
                if len(candidates) == batch_size:
                    more = True
                    break
                candidates.append(record)
                not_migratable += passed_over
                passed_over = 0
            elif not record.is_migrated():
                passed_over += 1
        if not more:
            not_migratable += passed_over

        result = MigrationResult(total_candidates=len(candidates), not_migratable=not_migratable)
        if more:
            result.next_cursor = candidates[-1].id

        logger.info(
            "payout_migration_started",
            candidates=len(candidates),
            not_migratable=not_migratable,
            start_after=start_after,
        )

        for index, record in enumerate(candidates):
            if self.control.stop_requested:
                result.stopped = True
                result.next_cursor = candidates[index - 1].id if index else start_after
                logger.info("payout_migration_stopped", processed=index)
                break

            try:
                stats = await self._migrate_record(record)
            except PartialMigrationError as exc:
                result.skipped_count += 1
                result.skipped.append(SkippedPayout(id=exc.record_id, reason=exc.reason))
                logger.warning("payout_migration_skipped", payout_id=exc.record_id, reason=exc.reason)
            else:
                result.updated_count += 1
                logger.info(
                    "payout_migrated",
                    payout_id=record.id,
                    order_count=stats.order_count,
                    product_types=len(stats.product_type_stats),
                )

            if self.item_delay and index < len(candidates) - 1:
                await asyncio.sleep(self.item_delay)

        logger.info(
            "payout_migration_finished",
            updated=result.updated_count,
            skipped=result.skipped_count,
            stopped=result.stopped,
        )
        return result

    async def _migrate_record(self, record: PayoutStatsRecord) -> PayoutStats:
        """Compute and persist stats for one record, or raise PartialMigrationError."""
        try:
            orders: List[OrderSummary] = await self.orders.get_orders_by_numbers(record.order_numbers)
        except RECORD_ERRORS as exc:
            raise PartialMigrationError(record.id, f"order lookup failed: {_reason(exc)}") from exc

        if not orders:
            raise PartialMigrationError(record.id, "orders not found")

        stats = compute_payout_stats(orders)
        try:
            saved = await self.payouts.save_stats(record.id, stats)
        except RECORD_ERRORS as exc:
            raise PartialMigrationError(record.id, f"update failed: {_reason(exc)}") from exc

        if not saved:
            raise PartialMigrationError(record.id, "record disappeared")
        return stats
