from datetime import datetime
from typing import Optional

from pydantic import Field

from debt_ledger.models.base import MongoModel, _utcnow


class PersonMapping(MongoModel):
    """Operator-editable mapping from a responsible party to a debt-account owner."""
    responsible_party_id: str
    person_id: str
    display_name: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
