"""
DEBT SERVICE - BALANCE POSTINGS AND REPAYMENTS
==============================================

CRITICAL BUSINESS RULES:
1. Balance only changes through post_expense, record_payment and reconciliation
2. Each change is one atomic statement on the account document
3. A payment larger than the balance is rejected whole, never truncated
4. remaining_debt_after is the post-payment balance at the moment of payment
5. Balance change and its log row share a unit of work
"""

from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from debt_ledger.core.errors import InsufficientBalanceError, NotFoundError
from debt_ledger.core.logging import get_logger
from debt_ledger.db.session import unit_of_work, retry_on_conflict
from debt_ledger.models.base import to_object_id
from debt_ledger.models.debt import DebtAccount, PaymentRecord
from debt_ledger.repositories.debt_repo import DebtAccountRepository
from debt_ledger.repositories.payment_repo import PaymentRepository
from debt_ledger.utils.money import from_cents, positive_cents, require_text

logger = get_logger(__name__)


class DebtService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.debts = DebtAccountRepository(db)
        self.payments = PaymentRepository(db)

    # ============================================================
    # POSTINGS
    # ============================================================

    async def post_expense(self, person_id: str, amount, session=None) -> DebtAccount:
        """
        Increase a person's balance by amount.

        Creates the account at 0 first when the person has none. Never fails
        on account state; only invalid input is rejected. Pass the session of
        the unit of work that wrote the originating expense.
        """
        person = require_text(person_id, "person_id")
        cents = positive_cents(amount)
        account = await self.debts.increment_balance(person, cents, session=session)
        logger.info(
            "expense_posted",
            person_id=person,
            amount_cents=cents,
            balance_cents=account.balance_cents,
        )
        return account

    async def record_payment(
        self,
        debt_account_id: str,
        amount,
        comment: Optional[str] = None,
        receipt_photo_ref: Optional[str] = None,
        processed_by: Optional[str] = None,
    ) -> PaymentRecord:
        """
        Record a repayment against a debt account.

        ATOMIC: the conditional decrement and the audit row commit together.
        Raises ValidationError, NotFoundError or InsufficientBalanceError.
        """
        cents = positive_cents(amount)
        operator = require_text(processed_by, "processed_by")
        if to_object_id(debt_account_id) is None:
            raise NotFoundError(
                f"Debt account {debt_account_id} not found",
                debt_account_id=debt_account_id
            )

        async def apply() -> PaymentRecord:
            async with unit_of_work(self.db) as uow:
                account = await self.debts.decrement_if_covered(
                    debt_account_id, cents, session=uow.session
                )
                if account is None:
                    current = await self.debts.get_by_id(debt_account_id, session=uow.session)
                    if current is None:
                        raise NotFoundError(
                            f"Debt account {debt_account_id} not found",
                            debt_account_id=debt_account_id
                        )
                    raise InsufficientBalanceError(
                        current_balance=current.balance,
                        attempted_amount=from_cents(cents),
                        debt_account_id=debt_account_id,
                    )

                uow.on_rollback(lambda: self.debts.restore_balance(debt_account_id, cents))

                payment = PaymentRecord(
                    debt_account_id=debt_account_id,
                    amount_cents=cents,
                    remaining_debt_after_cents=account.balance_cents,
                    comment=comment or "",
                    receipt_photo_ref=receipt_photo_ref or None,
                    processed_by=operator,
                )
                return await self.payments.insert_payment(payment, session=uow.session)

        try:
            payment = await retry_on_conflict(apply)
        except InsufficientBalanceError as exc:
            logger.info(
                "payment_rejected",
                debt_account_id=debt_account_id,
                amount_cents=cents,
                current_balance=str(exc.current_balance),
            )
            raise

        logger.info(
            "payment_recorded",
            debt_account_id=debt_account_id,
            payment_id=payment.id,
            amount_cents=cents,
            remaining_debt_after_cents=payment.remaining_debt_after_cents,
            processed_by=operator,
        )
        return payment

    # ============================================================
    # READS
    # ============================================================

    async def get_debt_account(self, person_id: str) -> DebtAccount:
        account = await self.debts.get_by_person(person_id)
        if account is None:
            raise NotFoundError(f"No debt account for person '{person_id}'", person_id=person_id)
        return account

    async def list_debt_accounts(self) -> List[DebtAccount]:
        return await self.debts.list_accounts()

    async def list_payment_history(self, debt_account_id: str) -> List[PaymentRecord]:
        """Payments for an account, newest payment_date first."""
        account = await self.debts.get_by_id(debt_account_id)
        if account is None:
            raise NotFoundError(
                f"Debt account {debt_account_id} not found",
                debt_account_id=debt_account_id
            )
        return await self.payments.list_for_account(account.id)

    async def list_all_payments(self) -> List[PaymentRecord]:
        return await self.payments.list_for_account(None)
