from fastapi import APIRouter
from debt_ledger.api.v1.endpoints import expenses, debts, persons, payouts

api_router = APIRouter()

api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
api_router.include_router(debts.router, prefix="/debts", tags=["debts"])
api_router.include_router(persons.router, prefix="/persons", tags=["persons"])
api_router.include_router(payouts.router, prefix="/payouts", tags=["payouts"])
