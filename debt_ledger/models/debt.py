"""
Debt models - per-person running balance and the repayment audit trail.

Design principles:
- One DebtAccount per person (unique person_id)
- balance == sum(expenses of person) - sum(payments on account), never negative
- Balance only changes through expense postings, payments and reconciliation
- PaymentRecord is immutable; remaining_debt_after_cents is a point-in-time
  snapshot and is never recomputed
- All amounts in integer cents
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from debt_ledger.models.base import MongoModel, _utcnow
from debt_ledger.utils.money import from_cents


class DebtAccount(MongoModel):
    """
    Running balance of what a person owes the business.

    Invariants:
    - balance_cents >= 0
    - a payment that would make it negative is rejected, not clamped
    """
    person_id: str
    balance_cents: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    reconciled_at: Optional[datetime] = None

    @property
    def balance(self) -> Decimal:
        return from_cents(self.balance_cents)


class PaymentRecord(MongoModel):
    """Immutable repayment row."""
    debt_account_id: str
    amount_cents: int
    remaining_debt_after_cents: int
    comment: str = ""
    receipt_photo_ref: Optional[str] = None
    processed_by: str
    payment_date: datetime = Field(default_factory=_utcnow)

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    @property
    def remaining_debt_after(self) -> Decimal:
        return from_cents(self.remaining_debt_after_cents)
