from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from debt_ledger.models.debt import DebtAccount, PaymentRecord


class DebtAccountResponse(BaseModel):
    id: str
    person_id: str
    balance: Decimal
    updated_at: datetime
    reconciled_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, account: DebtAccount) -> "DebtAccountResponse":
        return cls(
            id=str(account.id),
            person_id=account.person_id,
            balance=account.balance,
            updated_at=account.updated_at,
            reconciled_at=account.reconciled_at
        )


class PaymentCreate(BaseModel):
    """Request body to record a repayment. The operator comes from the token."""
    debt_account_id: str
    amount: Decimal
    comment: Optional[str] = None
    receipt_photo_ref: Optional[str] = None


class PaymentResponse(BaseModel):
    id: str
    debt_account_id: str
    amount: Decimal
    remaining_debt_after: Decimal
    comment: str
    receipt_photo_ref: Optional[str] = None
    processed_by: str
    payment_date: datetime

    @classmethod
    def from_model(cls, payment: PaymentRecord) -> "PaymentResponse":
        return cls(
            id=str(payment.id),
            debt_account_id=payment.debt_account_id,
            amount=payment.amount,
            remaining_debt_after=payment.remaining_debt_after,
            comment=payment.comment,
            receipt_photo_ref=payment.receipt_photo_ref,
            processed_by=payment.processed_by,
            payment_date=payment.payment_date
        )


class DriftEntry(BaseModel):
    """Stored vs. restated balance for one person."""
    person_id: str
    stored_balance: Optional[Decimal] = None
    computed_balance: Decimal
    drift: Decimal
    responsible_party_ids: List[str] = Field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return self.drift == 0


class ReconciliationFailure(BaseModel):
    person_id: str
    error: str
    detail: str


class ReconciliationReport(BaseModel):
    accounts: List[DebtAccountResponse] = Field(default_factory=list)
    failures: List[ReconciliationFailure] = Field(default_factory=list)


class AccountsInitResponse(BaseModel):
    created: List[DebtAccountResponse] = Field(default_factory=list)
    existing: List[str] = Field(default_factory=list)
