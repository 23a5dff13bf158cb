from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel, Field, ConfigDict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an ObjectId, returning None for anything malformed."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class MongoModel(BaseModel):
    """Base for stored documents; ids are exposed as strings."""

    id: Optional[str] = Field(default=None, validation_alias="_id", serialization_alias="_id")

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        from_attributes=True
    )

    @classmethod
    def from_mongo(cls, doc: Optional[Dict[str, Any]]):
        if doc is None:
            return None
        doc = dict(doc)
        if "_id" in doc:
            doc["_id"] = str(doc["_id"])
        return cls(**doc)

    def to_mongo(self) -> Dict[str, Any]:
        """Document for insertion; the id is left to MongoDB."""
        return self.model_dump(exclude={"id"}, exclude_none=False)


def as_document_id(value: Any) -> Any:
    """ObjectId when the value parses as one, otherwise the raw value (string ids)."""
    return to_object_id(value) or value
