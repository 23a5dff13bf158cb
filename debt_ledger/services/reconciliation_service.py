"""
Reconciliation - restate balances from the expense and payment logs.

Used to bootstrap accounts from historical data, to correct drift between
incremental postings and the logs, and to re-derive balances after a
registry change. A restatement never reads the stored balance:

    balance = sum(expenses of every party mapped to the person)
            - sum(payments recorded against the person's account)

Running it twice with no writes in between yields the same balance. It takes
no lock against concurrent postings; a run that overlaps a posting may see an
intermediate state and is simply re-run.
"""

from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from debt_ledger.core.errors import LedgerError, NegativeBalanceError, NotFoundError
from debt_ledger.core.logging import get_logger
from debt_ledger.models.debt import DebtAccount
from debt_ledger.repositories.debt_repo import DebtAccountRepository
from debt_ledger.repositories.expense_repo import ExpenseRepository
from debt_ledger.repositories.payment_repo import PaymentRepository
from debt_ledger.schemas.debt import (
    AccountsInitResponse,
    DebtAccountResponse,
    DriftEntry,
    ReconciliationFailure,
    ReconciliationReport,
)
from debt_ledger.services.person_registry import PersonRegistry
from debt_ledger.utils.money import from_cents, require_text

logger = get_logger(__name__)


class ReconciliationService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.registry = PersonRegistry(db)
        self.debts = DebtAccountRepository(db)
        self.expenses = ExpenseRepository(db)
        self.payments = PaymentRepository(db)

    async def _restate(self, person_id: str) -> Tuple[int, List[str], Optional[DebtAccount]]:
        """Return (restated balance cents, mapped parties, existing account)."""
        parties = await self.registry.parties_for_person(person_id)
        account = await self.debts.get_by_person(person_id)
        if not parties and account is None:
            raise NotFoundError(
                f"Person '{person_id}' has no mapped parties and no debt account",
                person_id=person_id
            )

        expenses_cents = await self.expenses.total_for_parties(parties)
        payments_cents = await self.payments.total_for_account(account.id) if account else 0
        return expenses_cents - payments_cents, parties, account

    async def recompute(self, person_id: str) -> DebtAccount:
        """Restate and persist one person's balance. Idempotent."""
        person = require_text(person_id, "person_id")
        balance_cents, parties, _ = await self._restate(person)

        if balance_cents < 0:
            logger.error(
                "debt_recompute_negative",
                person_id=person,
                balance_cents=balance_cents,
                responsible_party_ids=parties,
            )
            raise NegativeBalanceError(
                f"Payments for '{person}' exceed attributed expenses by {from_cents(-balance_cents)}",
                person_id=person,
                computed_balance=from_cents(balance_cents),
            )

        account = await self.debts.set_balance(person, balance_cents)
        logger.info(
            "debt_recomputed",
            person_id=person,
            balance_cents=balance_cents,
            responsible_party_ids=parties,
        )
        return account

    async def _all_persons(self) -> List[str]:
        persons = set(await self.registry.known_persons())
        persons.update(a.person_id for a in await self.debts.list_accounts())
        return sorted(persons)

    async def recompute_all(self) -> ReconciliationReport:
        """Recompute every known person; failures are reported, not fatal."""
        report = ReconciliationReport()
        for person_id in await self._all_persons():
            try:
                account = await self.recompute(person_id)
            except LedgerError as exc:
                report.failures.append(
                    ReconciliationFailure(person_id=person_id, error=exc.code, detail=exc.message)
                )
                continue
            report.accounts.append(DebtAccountResponse.from_model(account))

        logger.info(
            "debt_recompute_all",
            recomputed=len(report.accounts),
            failed=len(report.failures),
        )
        return report

    async def check_drift(self, person_id: Optional[str] = None) -> List[DriftEntry]:
        """Compare stored and restated balances without writing anything."""
        persons = [person_id] if person_id else await self._all_persons()
        entries = []
        for person in persons:
            balance_cents, parties, account = await self._restate(person)
            stored_cents = account.balance_cents if account else None
            entries.append(DriftEntry(
                person_id=person,
                stored_balance=from_cents(stored_cents) if stored_cents is not None else None,
                computed_balance=from_cents(balance_cents),
                drift=from_cents((stored_cents or 0) - balance_cents),
                responsible_party_ids=parties,
            ))
        return entries

    async def ensure_accounts(self) -> AccountsInitResponse:
        """Create zero-balance accounts for mapped persons that have none."""
        response = AccountsInitResponse()
        for person_id in await self.registry.known_persons():
            account, created = await self.debts.ensure_account(person_id)
            if created:
                response.created.append(DebtAccountResponse.from_model(account))
            else:
                response.existing.append(person_id)

        logger.info("debt_accounts_initialised", created=len(response.created))
        return response
