from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from debt_ledger.db.guard import storage_call
from debt_ledger.models.debt import PaymentRecord


class PaymentRepository:
    """Repository for immutable payment records (the repayment audit trail)."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["debt_payments"]

    @storage_call(idempotent=False)
    async def insert_payment(self, payment: PaymentRecord, session=None) -> PaymentRecord:
        result = await self.collection.insert_one(payment.to_mongo(), session=session)
        return payment.model_copy(update={"id": str(result.inserted_id)})

    @storage_call()
    async def list_for_account(self, debt_account_id: Optional[str] = None) -> List[PaymentRecord]:
        """Payments newest first; all accounts when no id is given."""
        query = {}
        if debt_account_id is not None:
            query["debt_account_id"] = debt_account_id

        cursor = self.collection.find(query).sort([("payment_date", -1), ("_id", -1)])
        docs = await cursor.to_list(None)
        return [PaymentRecord.from_mongo(doc) for doc in docs]

    @storage_call()
    async def total_for_account(self, debt_account_id: str) -> int:
        """Sum of payment cents recorded against an account."""
        result = await self.collection.aggregate([
            {"$match": {"debt_account_id": debt_account_id}},
            {"$group": {"_id": None, "total": {"$sum": "$amount_cents"}}}
        ]).to_list(None)

        return int(result[0]["total"]) if result else 0
