from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from debt_ledger.core.auth import Operator, get_current_operator
from debt_ledger.db.mongo import get_db
from debt_ledger.schemas.expense import ExpenseCreate, ExpensePage, ExpenseResponse
from debt_ledger.services.expense_service import ExpenseService

router = APIRouter()


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    payload: ExpenseCreate,
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """
    Record an expense and post it to the responsible person's debt.

    - amount must be positive with at most two decimals
    - responsible_party_id must be mapped in the person registry
    """
    expense = await ExpenseService(db).create_expense(
        amount=payload.amount,
        category=payload.category,
        responsible_party_id=payload.responsible_party_id,
        comment=payload.comment
    )
    return ExpenseResponse.from_model(expense)


@router.get("", response_model=ExpensePage)
async def list_expenses(
    page: int = Query(1),
    limit: int = Query(50),
    responsible_party_id: Optional[str] = None,
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """List expenses, newest first."""
    return await ExpenseService(db).list_expenses(page, limit, responsible_party_id)
