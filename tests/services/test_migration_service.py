from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from pymongo.errors import OperationFailure

from debt_ledger.core.errors import ConcurrencyConflictError, StorageTimeoutError, ValidationError
from debt_ledger.models.payout import OrderSummary, PayoutStatsRecord
from debt_ledger.services.migration_service import (
    MigrationControl,
    MigrationService,
    compute_payout_stats,
)


@pytest.fixture
def control():
    return MigrationControl()


@pytest.fixture
def service(test_db, control):
    return MigrationService(test_db, control=control, item_delay=0)


async def seed_orders(db):
    await db["orders"].insert_many([
        {"order_number": "A1", "category": "pizza", "price": 12.5},
        {"order_number": "A2", "category": "drinks", "price": 3.0},
        {"order_number": "B1", "category": "pizza", "price": 10},
        {"order_number": "C1", "price": 4},
    ])


async def seed_payout(db, payout_id, order_numbers, **fields):
    doc = {"_id": payout_id, "order_numbers": order_numbers, "date": datetime.now(timezone.utc)}
    doc.update(fields)
    await db["payouts"].insert_one(doc)


async def get_payout(db, payout_id):
    return PayoutStatsRecord.from_mongo(await db["payouts"].find_one({"_id": payout_id}))


def test_compute_payout_stats():
    orders = [
        OrderSummary(order_number="1", category="pizza", price=Decimal("10")),
        OrderSummary(order_number="2", category="drinks", price=Decimal("20")),
        OrderSummary(order_number="3", category="pizza", price=Decimal("5.01")),
    ]

    stats = compute_payout_stats(orders)

    assert stats.order_count == 3
    assert stats.average_check == Decimal("11.67")
    assert stats.product_type_stats == {"drinks": 1, "pizza": 2}
    assert list(stats.product_type_stats) == ["drinks", "pizza"]


def test_compute_payout_stats_no_orders():
    stats = compute_payout_stats([])

    assert stats.order_count == 0
    assert stats.average_check == Decimal("0.00")
    assert stats.product_type_stats == {}


def test_migration_predicates():
    assert PayoutStatsRecord(order_numbers=["A1"]).needs_update()
    assert not PayoutStatsRecord(order_numbers=None).needs_update()
    assert not PayoutStatsRecord(order_numbers=[""]).needs_update()

    migrated = PayoutStatsRecord(
        order_numbers=["A1"], order_count=1, average_check=12.5, product_type_stats={"pizza": 1}
    )
    assert migrated.is_migrated()
    assert not migrated.needs_update()

    empty_stats = PayoutStatsRecord(
        order_numbers=["A1"], order_count=1, average_check=12.5, product_type_stats={}
    )
    assert not empty_stats.is_migrated()
    assert empty_stats.needs_update()


@pytest.mark.asyncio
async def test_migrate_updates_and_skips(test_db, service):
    await seed_orders(test_db)
    await seed_payout(test_db, "p1", ["A1", "A2"])
    await seed_payout(test_db, "p2", ["Z9"])
    await seed_payout(test_db, "p3", [])
    await seed_payout(
        test_db, "p4", ["B1"], order_count=1, average_check=10.0, product_type_stats={"pizza": 1}
    )

    status = await service.get_migration_status()
    assert status.total_records == 4
    assert status.needs_update == 2
    assert status.already_migrated == 1
    assert status.not_migratable == 1
    assert status.ready is True

    result = await service.migrate_payout_stats(batch_size=10)

    assert result.total_candidates == 2
    assert result.not_migratable == 1
    assert result.updated_count == 1
    assert result.skipped_count == 1
    assert result.skipped[0].id == "p2"
    assert result.skipped[0].reason == "orders not found"
    assert result.next_cursor is None

    p1 = await get_payout(test_db, "p1")
    assert p1.order_count == 2
    assert p1.average_check == 7.75
    assert p1.product_type_stats == {"drinks": 1, "pizza": 1}
    assert p1.is_migrated()

    status = await service.get_migration_status()
    assert status.needs_update == 1
    assert status.already_migrated == 2


@pytest.mark.asyncio
async def test_migrate_twice_changes_nothing(test_db, service):
    await seed_orders(test_db)
    await seed_payout(test_db, "p1", ["A1", "A2"])
    await seed_payout(test_db, "p2", ["C1"])

    first = await service.migrate_payout_stats()
    before = await test_db["payouts"].find({}).sort("_id", 1).to_list(None)
    second = await service.migrate_payout_stats()
    after = await test_db["payouts"].find({}).sort("_id", 1).to_list(None)

    assert first.updated_count == 2
    assert second.updated_count == 0
    assert second.total_candidates == 0
    assert before == after

    p2 = await get_payout(test_db, "p2")
    assert p2.product_type_stats == {"unknown": 1}


@pytest.mark.asyncio
async def test_batch_size_and_cursor(test_db, service):
    await seed_orders(test_db)
    for payout_id in ("p1", "p2", "p3"):
        await seed_payout(test_db, payout_id, ["B1"])

    first = await service.migrate_payout_stats(batch_size=2)
    assert first.updated_count == 2
    assert first.next_cursor == "p2"

    second = await service.migrate_payout_stats(batch_size=2, start_after=first.next_cursor)
    assert second.updated_count == 1
    assert second.next_cursor is None


@pytest.mark.asyncio
async def test_cursor_moves_past_records_that_keep_failing(test_db, service):
    await seed_orders(test_db)
    await seed_payout(test_db, "p1", ["Z9"])
    await seed_payout(test_db, "p2", ["B1"])

    first = await service.migrate_payout_stats(batch_size=1)
    assert first.skipped_count == 1
    assert first.next_cursor == "p1"

    second = await service.migrate_payout_stats(batch_size=1, start_after=first.next_cursor)
    assert second.updated_count == 1
    assert (await get_payout(test_db, "p2")).is_migrated()


@pytest.mark.asyncio
async def test_order_lookup_failure_skips_record(test_db, service):
    await seed_orders(test_db)
    await seed_payout(test_db, "p1", ["A1"])
    await seed_payout(test_db, "p2", ["B1"])

    original = service.orders.get_orders_by_numbers
    service.orders.get_orders_by_numbers = AsyncMock(
        side_effect=[StorageTimeoutError("slow"), await original(["B1"])]
    )

    result = await service.migrate_payout_stats()

    assert result.updated_count == 1
    assert result.skipped[0].id == "p1"
    assert result.skipped[0].reason == "order lookup failed: storage_timeout"
    assert not (await get_payout(test_db, "p1")).is_migrated()



@pytest.mark.asyncio
async def test_malformed_order_price_skips_only_that_record(test_db, service):
    await seed_orders(test_db)
    await test_db["orders"].insert_one({"order_number": "X1", "category": "pizza", "price": "n/a"})
    await seed_payout(test_db, "p1", ["X1"])
    await seed_payout(test_db, "p2", ["B1"])

    result = await service.migrate_payout_stats()

    assert result.updated_count == 1
    assert result.skipped_count == 1
    assert result.skipped[0].id == "p1"
    assert result.skipped[0].reason == "order lookup failed: InvalidOperation"
    assert not (await get_payout(test_db, "p1")).is_migrated()
    assert (await get_payout(test_db, "p2")).is_migrated()


@pytest.mark.asyncio
async def test_non_finite_order_price_skips_record(test_db, service):
    await test_db["orders"].insert_one({"order_number": "N1", "category": "pizza", "price": "NaN"})
    await seed_payout(test_db, "p1", ["N1"])

    result = await service.migrate_payout_stats()

    assert result.updated_count == 0
    assert result.skipped[0].reason == "order lookup failed: ValidationError"


@pytest.mark.asyncio
async def test_rejected_stats_write_skips_record(test_db, service):
    await seed_orders(test_db)
    await seed_payout(test_db, "p1", ["A1"])
    await seed_payout(test_db, "p2", ["B1"])

    original = service.payouts.save_stats
    attempted = []

    async def reject_first(record_id, stats):
        attempted.append(record_id)
        if len(attempted) == 1:
            raise OperationFailure("Document failed validation", code=121)
        return await original(record_id, stats)

    service.payouts.save_stats = reject_first

    result = await service.migrate_payout_stats()

    assert result.updated_count == 1
    assert result.skipped[0].id == "p1"
    assert result.skipped[0].reason == "update failed: OperationFailure"
    assert (await get_payout(test_db, "p2")).is_migrated()


@pytest.mark.asyncio
async def test_records_without_orders_counted_as_not_migratable(test_db, service):
    await seed_orders(test_db)
    await seed_payout(test_db, "p1", None)
    await seed_payout(test_db, "p2", ["B1"])
    await seed_payout(test_db, "p3", [])
    await seed_payout(test_db, "p4", [""])
    await seed_payout(test_db, "p5", ["A1"])

    first = await service.migrate_payout_stats(batch_size=1)
    assert first.total_candidates == 1
    assert first.not_migratable == 1
    assert first.next_cursor == "p2"

    second = await service.migrate_payout_stats(batch_size=1, start_after=first.next_cursor)
    assert second.updated_count == 1
    assert second.not_migratable == 2
    assert second.skipped_count == 0
    assert second.next_cursor is None

    status = await service.get_migration_status()
    assert status.not_migratable == 3
    assert status.needs_update == 0
    assert status.already_migrated == 2
    assert status.total_records == status.needs_update + status.already_migrated + status.not_migratable
    assert status.ready is False

@pytest.mark.asyncio
async def test_stop_takes_effect_between_records(test_db, service, control):
    await seed_orders(test_db)
    for payout_id in ("p1", "p2", "p3"):
        await seed_payout(test_db, payout_id, ["B1"])

    original = service.orders.get_orders_by_numbers

    async def lookup_then_stop(numbers):
        control.request_stop()
        return await original(numbers)

    service.orders.get_orders_by_numbers = lookup_then_stop

    result = await service.migrate_payout_stats()

    assert result.stopped is True
    assert result.updated_count == 1
    assert result.next_cursor == "p1"
    assert (await get_payout(test_db, "p1")).is_migrated()
    assert not (await get_payout(test_db, "p2")).is_migrated()
    assert control.running is False
    assert control.stop_requested is False


@pytest.mark.asyncio
async def test_only_one_run_at_a_time(test_db, service, control):
    await control.acquire()
    try:
        with pytest.raises(ConcurrencyConflictError):
            await service.migrate_payout_stats()
        assert (await service.get_migration_status()).running is True
    finally:
        control.release()


def test_stop_without_run(control):
    assert control.request_stop() is False
    assert control.stop_requested is False


@pytest.mark.asyncio
@pytest.mark.parametrize("batch_size", [0, -1, 501])
async def test_batch_size_bounds(service, batch_size):
    with pytest.raises(ValidationError):
        await service.migrate_payout_stats(batch_size=batch_size)
