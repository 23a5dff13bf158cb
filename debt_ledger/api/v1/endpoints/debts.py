from typing import List, Optional
from fastapi import APIRouter, Depends, status

from debt_ledger.core.auth import Operator, get_current_operator, require_admin
from debt_ledger.db.mongo import get_db
from debt_ledger.schemas.debt import (
    AccountsInitResponse,
    DebtAccountResponse,
    DriftEntry,
    PaymentCreate,
    PaymentResponse,
    ReconciliationReport,
)
from debt_ledger.services.debt_service import DebtService
from debt_ledger.services.reconciliation_service import ReconciliationService

router = APIRouter()

# Static paths are registered before /{person_id} so they are not shadowed.


@router.get("", response_model=List[DebtAccountResponse])
async def list_debt_accounts(
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """List all debt accounts ordered by person."""
    accounts = await DebtService(db).list_debt_accounts()
    return [DebtAccountResponse.from_model(a) for a in accounts]


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payload: PaymentCreate,
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """
    Record a repayment against a debt account.

    - 404 if the account does not exist
    - 409 if the amount exceeds the current balance (nothing is applied)
    """
    payment = await DebtService(db).record_payment(
        debt_account_id=payload.debt_account_id,
        amount=payload.amount,
        comment=payload.comment,
        receipt_photo_ref=payload.receipt_photo_ref,
        processed_by=current_operator.username
    )
    return PaymentResponse.from_model(payment)


@router.get("/payments", response_model=List[PaymentResponse])
async def list_all_payments(
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """All payments, newest first."""
    payments = await DebtService(db).list_all_payments()
    return [PaymentResponse.from_model(p) for p in payments]


@router.get("/accounts/{debt_account_id}/payments", response_model=List[PaymentResponse])
async def list_payment_history(
    debt_account_id: str,
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """Payment history for one account, newest first."""
    payments = await DebtService(db).list_payment_history(debt_account_id)
    return [PaymentResponse.from_model(p) for p in payments]


@router.post("/recompute", response_model=ReconciliationReport)
async def recompute_all(
    current_operator: Operator = Depends(require_admin),
    db = Depends(get_db)
):
    """Restate every balance from the logs."""
    return await ReconciliationService(db).recompute_all()


@router.get("/drift", response_model=List[DriftEntry])
async def check_drift(
    person_id: Optional[str] = None,
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """Compare stored balances with restated ones without writing."""
    return await ReconciliationService(db).check_drift(person_id)


@router.post("/init", response_model=AccountsInitResponse)
async def init_accounts(
    current_operator: Operator = Depends(require_admin),
    db = Depends(get_db)
):
    """Create zero-balance accounts for mapped persons that have none."""
    return await ReconciliationService(db).ensure_accounts()


@router.get("/{person_id}", response_model=DebtAccountResponse)
async def get_debt_account(
    person_id: str,
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """Get a person's debt account."""
    account = await DebtService(db).get_debt_account(person_id)
    return DebtAccountResponse.from_model(account)


@router.post("/{person_id}/recompute", response_model=DebtAccountResponse)
async def recompute_debt(
    person_id: str,
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """Restate a person's balance from the expense and payment logs."""
    account = await ReconciliationService(db).recompute(person_id)
    return DebtAccountResponse.from_model(account)
