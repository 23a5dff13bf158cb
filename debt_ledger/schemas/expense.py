from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from debt_ledger.models.expense import ExpenseTransaction
from debt_ledger.utils.money import from_cents


class ExpenseCreate(BaseModel):
    """Request body to record an expense."""
    amount: Decimal
    category: str
    responsible_party_id: str
    comment: Optional[str] = None


class ExpenseResponse(BaseModel):
    id: str
    amount: Decimal
    category: str
    responsible_party_id: str
    person_id: str
    comment: str
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_model(cls, expense: ExpenseTransaction) -> "ExpenseResponse":
        return cls(
            id=str(expense.id),
            amount=from_cents(expense.amount_cents),
            category=expense.category,
            responsible_party_id=expense.responsible_party_id,
            person_id=expense.person_id,
            comment=expense.comment,
            created_at=expense.created_at
        )


class ExpensePage(BaseModel):
    items: List[ExpenseResponse] = Field(default_factory=list)
    total: int
    page: int
    limit: int
    has_more: bool

    @classmethod
    def build(cls, expenses: List[ExpenseTransaction], total: int, page: int, limit: int) -> "ExpensePage":
        return cls(
            items=[ExpenseResponse.from_model(e) for e in expenses],
            total=total,
            page=page,
            limit=limit,
            has_more=page * limit < total
        )
