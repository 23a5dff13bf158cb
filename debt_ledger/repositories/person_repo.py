from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from debt_ledger.db.guard import storage_call
from debt_ledger.models.person import PersonMapping


class PersonMappingRepository:
    """Person mapping database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["person_mappings"]

    @storage_call()
    async def get_by_party(self, responsible_party_id: str) -> Optional[PersonMapping]:
        """Get the mapping for a responsible party."""
        doc = await self.collection.find_one({"responsible_party_id": responsible_party_id})
        return PersonMapping.from_mongo(doc)

    @storage_call()
    async def list_mappings(self) -> List[PersonMapping]:
        cursor = self.collection.find({}).sort("responsible_party_id", 1)
        docs = await cursor.to_list(None)
        return [PersonMapping.from_mongo(doc) for doc in docs]

    @storage_call()
    async def upsert_mapping(
        self,
        responsible_party_id: str,
        person_id: str,
        display_name: Optional[str] = None
    ) -> PersonMapping:
        """Create or repoint a mapping. Idempotent."""
        now = datetime.now(timezone.utc)
        doc = await self.collection.find_one_and_update(
            {"responsible_party_id": responsible_party_id},
            {
                "$set": {
                    "person_id": person_id,
                    "display_name": display_name,
                    "updated_at": now
                },
                "$setOnInsert": {
                    "created_at": now
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return PersonMapping.from_mongo(doc)

    @storage_call()
    async def delete_mapping(self, responsible_party_id: str) -> bool:
        result = await self.collection.delete_one({"responsible_party_id": responsible_party_id})
        return result.deleted_count > 0

    @storage_call()
    async def parties_for_person(self, person_id: str) -> List[str]:
        """All responsible parties currently attributed to a person."""
        cursor = self.collection.find({"person_id": person_id}, {"responsible_party_id": 1})
        docs = await cursor.to_list(None)
        return sorted(doc["responsible_party_id"] for doc in docs)

    @storage_call()
    async def known_persons(self) -> List[str]:
        cursor = self.collection.find({}, {"person_id": 1})
        docs = await cursor.to_list(None)
        return sorted({doc["person_id"] for doc in docs})
