from typing import AsyncIterator, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from debt_ledger.db.guard import storage_call
from debt_ledger.models.base import as_document_id
from debt_ledger.models.payout import PayoutStats, PayoutStatsRecord

PROJECTION = {
    "order_numbers": 1,
    "order_count": 1,
    "average_check": 1,
    "product_type_stats": 1,
    "date": 1,
}


class PayoutRepository:
    """Repository for payout records carrying derived order statistics."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["payouts"]

    async def iter_records(self, start_after: Optional[str] = None) -> AsyncIterator[PayoutStatsRecord]:
        """Stream payout records in _id order, optionally after a cursor id."""
        query = {}
        if start_after:
            query["_id"] = {"$gt": as_document_id(start_after)}

        cursor = self.collection.find(query, PROJECTION).sort("_id", 1)
        async for doc in cursor:
            yield PayoutStatsRecord.from_mongo(doc)

    @storage_call()
    async def list_records(self, start_after: Optional[str] = None) -> List[PayoutStatsRecord]:
        return [record async for record in self.iter_records(start_after)]

    @storage_call()
    async def save_stats(self, record_id: str, stats: PayoutStats) -> bool:
        """Persist derived stats with one $set. Idempotent."""
        result = await self.collection.update_one(
            {"_id": as_document_id(record_id)},
            {
                "$set": {
                    "order_count": stats.order_count,
                    "average_check": float(stats.average_check),
                    "product_type_stats": dict(stats.product_type_stats)
                }
            }
        )
        return result.matched_count > 0
