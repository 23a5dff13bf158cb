from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from debt_ledger.core.errors import ValidationError
from debt_ledger.core.logging import get_logger
from debt_ledger.db.session import unit_of_work, retry_on_conflict
from debt_ledger.models.expense import ExpenseTransaction
from debt_ledger.repositories.expense_repo import ExpenseRepository
from debt_ledger.schemas.expense import ExpensePage
from debt_ledger.services.debt_service import DebtService
from debt_ledger.services.person_registry import PersonRegistry
from debt_ledger.utils.money import from_cents, positive_cents, require_text

logger = get_logger(__name__)

MAX_PAGE_SIZE = 200


class ExpenseService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.expenses = ExpenseRepository(db)
        self.registry = PersonRegistry(db)
        self.debts = DebtService(db)

    async def create_expense(
        self,
        amount,
        category: str,
        responsible_party_id: str,
        comment: Optional[str] = None,
    ) -> ExpenseTransaction:
        """
        Record an expense and post it to the responsible person's balance.

        The party is resolved before anything is written. The expense insert
        and the balance increment commit together or not at all.
        """
        cents = positive_cents(amount)
        category = require_text(category, "category")
        party = require_text(responsible_party_id, "responsible_party_id")
        person_id = await self.registry.resolve_person(party)

        async def apply() -> ExpenseTransaction:
            async with unit_of_work(self.db) as uow:
                expense = await self.expenses.insert_expense(
                    ExpenseTransaction(
                        amount_cents=cents,
                        category=category,
                        responsible_party_id=party,
                        person_id=person_id,
                        comment=comment or "",
                    ),
                    session=uow.session
                )
                uow.on_rollback(lambda: self.expenses.remove_expense(expense.id))
                await self.debts.post_expense(person_id, from_cents(cents), session=uow.session)
                return expense

        expense = await retry_on_conflict(apply)
        logger.info(
            "expense_created",
            expense_id=expense.id,
            responsible_party_id=party,
            person_id=person_id,
            amount_cents=cents,
            category=category,
        )
        return expense

    async def list_expenses(
        self,
        page: int = 1,
        limit: int = 50,
        responsible_party_id: Optional[str] = None
    ) -> ExpensePage:
        if page < 1:
            raise ValidationError("page must be at least 1", field="page")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")

        items, total = await self.expenses.list_expenses(page, limit, responsible_party_id)
        return ExpensePage.build(items, total=total, page=page, limit=limit)
