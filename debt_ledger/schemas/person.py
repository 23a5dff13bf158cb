from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from debt_ledger.models.person import PersonMapping


class MappingUpsert(BaseModel):
    """Request body to point a responsible party at a person."""
    person_id: str
    display_name: Optional[str] = None


class MappingResponse(BaseModel):
    responsible_party_id: str
    person_id: str
    display_name: Optional[str] = None
    updated_at: datetime

    @classmethod
    def from_model(cls, mapping: PersonMapping) -> "MappingResponse":
        return cls(
            responsible_party_id=mapping.responsible_party_id,
            person_id=mapping.person_id,
            display_name=mapping.display_name,
            updated_at=mapping.updated_at
        )
