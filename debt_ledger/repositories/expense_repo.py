"""
ExpenseRepository - append-only expense log.

Expenses are only ever inserted. The delete below exists solely as the
compensating write of a failed posting unit of work.
"""

from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from debt_ledger.db.guard import storage_call
from debt_ledger.models.base import to_object_id
from debt_ledger.models.expense import ExpenseTransaction


class ExpenseRepository:
    """Repository for expense transactions."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["expenses"]

    @storage_call(idempotent=False)
    async def insert_expense(self, expense: ExpenseTransaction, session=None) -> ExpenseTransaction:
        doc = expense.to_mongo()
        result = await self.collection.insert_one(doc, session=session)
        return expense.model_copy(update={"id": str(result.inserted_id)})

    @storage_call()
    async def remove_expense(self, expense_id: str, session=None) -> bool:
        """Compensating delete for an expense whose posting failed."""
        oid = to_object_id(expense_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid}, session=session)
        return result.deleted_count > 0

    @storage_call()
    async def list_expenses(
        self,
        page: int = 1,
        limit: int = 50,
        responsible_party_id: Optional[str] = None
    ) -> Tuple[List[ExpenseTransaction], int]:
        """Newest-first page of expenses and the total count."""
        query = {}
        if responsible_party_id:
            query["responsible_party_id"] = responsible_party_id

        total = await self.collection.count_documents(query)
        cursor = (
            self.collection.find(query)
            .sort([("created_at", -1), ("_id", -1)])
            .skip((page - 1) * limit)
            .limit(limit)
        )
        docs = await cursor.to_list(None)
        return [ExpenseTransaction.from_mongo(doc) for doc in docs], total

    @storage_call()
    async def total_for_parties(self, responsible_party_ids: List[str]) -> int:
        """Sum of expense cents recorded against any of the given parties."""
        if not responsible_party_ids:
            return 0

        result = await self.collection.aggregate([
            {"$match": {"responsible_party_id": {"$in": list(responsible_party_ids)}}},
            {"$group": {"_id": None, "total": {"$sum": "$amount_cents"}}}
        ]).to_list(None)

        return int(result[0]["total"]) if result else 0
