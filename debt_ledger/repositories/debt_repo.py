"""
DebtAccountRepository - the only writer of DebtAccount.balance_cents.

Every balance mutation is a single MongoDB statement:
1. Expense posting: upsert + $inc (creates the account at 0 first if needed)
2. Payment: conditional $inc guarded by balance_cents >= amount, so two
   concurrent payments can never both pass the balance check
3. Reconciliation: $set of a fully restated balance
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from debt_ledger.db.guard import storage_call
from debt_ledger.models.base import to_object_id
from debt_ledger.models.debt import DebtAccount


class DebtAccountRepository:
    """Repository for per-person debt accounts."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["debt_accounts"]

    @storage_call()
    async def get_by_person(self, person_id: str, session=None) -> Optional[DebtAccount]:
        doc = await self.collection.find_one({"person_id": person_id}, session=session)
        return DebtAccount.from_mongo(doc)

    @storage_call()
    async def get_by_id(self, account_id: str, session=None) -> Optional[DebtAccount]:
        oid = to_object_id(account_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid}, session=session)
        return DebtAccount.from_mongo(doc)

    @storage_call()
    async def list_accounts(self) -> List[DebtAccount]:
        docs = await self.collection.find({}).sort("person_id", 1).to_list(None)
        return [DebtAccount.from_mongo(doc) for doc in docs]

    @storage_call(idempotent=False)
    async def increment_balance(self, person_id: str, amount_cents: int, session=None) -> DebtAccount:
        """Add to a person's balance, creating the account at 0 if absent."""
        now = datetime.now(timezone.utc)
        doc = await self.collection.find_one_and_update(
            {"person_id": person_id},
            {
                "$inc": {"balance_cents": amount_cents},
                "$set": {"updated_at": now},
                "$setOnInsert": {"created_at": now}
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session
        )
        return DebtAccount.from_mongo(doc)

    @storage_call(idempotent=False)
    async def decrement_if_covered(
        self, account_id: str, amount_cents: int, session=None
    ) -> Optional[DebtAccount]:
        """
        Subtract amount_cents only if the balance covers it.

        Returns the account as it is after the decrement, or None when the
        account is missing or the balance is too low. The caller re-reads to
        tell the two apart.
        """
        oid = to_object_id(account_id)
        if oid is None:
            return None
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "balance_cents": {"$gte": amount_cents}},
            {
                "$inc": {"balance_cents": -amount_cents},
                "$set": {"updated_at": datetime.now(timezone.utc)}
            },
            return_document=ReturnDocument.AFTER,
            session=session
        )
        return DebtAccount.from_mongo(doc)

    @storage_call(idempotent=False)
    async def restore_balance(self, account_id: str, amount_cents: int) -> None:
        """Compensating increment for a payment whose audit row was not written."""
        await self.collection.update_one(
            {"_id": to_object_id(account_id)},
            {
                "$inc": {"balance_cents": amount_cents},
                "$set": {"updated_at": datetime.now(timezone.utc)}
            }
        )

    @storage_call()
    async def set_balance(self, person_id: str, balance_cents: int) -> DebtAccount:
        """Overwrite a balance with a restated value. Idempotent."""
        now = datetime.now(timezone.utc)
        doc = await self.collection.find_one_and_update(
            {"person_id": person_id},
            {
                "$set": {
                    "balance_cents": balance_cents,
                    "updated_at": now,
                    "reconciled_at": now
                },
                "$setOnInsert": {"created_at": now}
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return DebtAccount.from_mongo(doc)

    @storage_call()
    async def ensure_account(self, person_id: str) -> Tuple[DebtAccount, bool]:
        """Create a zero-balance account if the person has none. Returns (account, created)."""
        now = datetime.now(timezone.utc)
        result = await self.collection.update_one(
            {"person_id": person_id},
            {
                "$setOnInsert": {
                    "balance_cents": 0,
                    "created_at": now,
                    "updated_at": now
                }
            },
            upsert=True
        )
        doc = await self.collection.find_one({"person_id": person_id})
        return DebtAccount.from_mongo(doc), result.upserted_id is not None
