"""
Expense model - money spent on behalf of the business by a responsible party.

- Append-only: never updated or deleted once posted
- Amounts in integer cents
- person_id records who the registry resolved the party to at posting time;
  reconciliation always re-resolves through the current registry
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from debt_ledger.models.base import MongoModel, _utcnow


class ExpenseTransaction(MongoModel):
    amount_cents: int
    category: str
    responsible_party_id: str
    person_id: str
    comment: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
