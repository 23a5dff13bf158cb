"""Read-only access to the order-tracking collaborator's orders collection."""

from decimal import Decimal
from typing import Iterable, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from debt_ledger.db.guard import storage_call
from debt_ledger.models.payout import OrderSummary


class OrderRepository:
    """Order lookups for payout statistics."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["orders"]

    @storage_call()
    async def get_orders_by_numbers(self, numbers: Iterable[str]) -> List[OrderSummary]:
        """
        Fetch orders whose order_number is in the given set.

        Orders without a category are counted under "unknown"; orders without
        a price contribute 0 to the average.
        """
        wanted = sorted({str(n) for n in numbers if n})
        if not wanted:
            return []

        cursor = self.collection.find(
            {"order_number": {"$in": wanted}},
            {"order_number": 1, "category": 1, "price": 1}
        ).sort("order_number", 1)
        docs = await cursor.to_list(None)

        return [
            OrderSummary(
                order_number=str(doc["order_number"]),
                category=doc.get("category") or "unknown",
                price=Decimal(str(doc.get("price") or 0))
            )
            for doc in docs
        ]
