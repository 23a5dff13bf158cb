"""
Person registry - the single source of truth for who owes an expense.

Resolution never falls back to a default person: an unmapped party raises
UnmappedPartyError so the caller surfaces it instead of misattributing debt.
"""

from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from debt_ledger.core.errors import NotFoundError, UnmappedPartyError, ValidationError
from debt_ledger.core.logging import get_logger
from debt_ledger.models.person import PersonMapping
from debt_ledger.repositories.person_repo import PersonMappingRepository
from debt_ledger.utils.money import require_text

logger = get_logger(__name__)

# Fixed path segments under /debts; a person with one of these ids would be unreachable there
RESERVED_PERSON_IDS = frozenset({"accounts", "drift", "init", "payments", "recompute"})


class PersonRegistry:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.mappings = PersonMappingRepository(db)

    async def resolve_person(self, responsible_party_id: str) -> str:
        """Map a responsible party to its debt-account owner."""
        party = require_text(responsible_party_id, "responsible_party_id")
        mapping = await self.mappings.get_by_party(party)
        if mapping is None:
            raise UnmappedPartyError(party)
        return mapping.person_id

    async def list_mappings(self) -> List[PersonMapping]:
        return await self.mappings.list_mappings()

    async def upsert_mapping(
        self,
        responsible_party_id: str,
        person_id: str,
        display_name: Optional[str] = None
    ) -> PersonMapping:
        """
        Create or repoint a mapping.

        Balances are not touched; run a recompute for the old and new person
        afterwards to re-derive them under the new attribution.
        """
        party = require_text(responsible_party_id, "responsible_party_id")
        person = require_text(person_id, "person_id")
        if person in RESERVED_PERSON_IDS:
            raise ValidationError(f"'{person}' is a reserved person id", field="person_id")
        previous = await self.mappings.get_by_party(party)

        mapping = await self.mappings.upsert_mapping(party, person, display_name)
        logger.info(
            "person_mapping_saved",
            responsible_party_id=party,
            person_id=person,
            previous_person_id=previous.person_id if previous else None,
        )
        return mapping

    async def delete_mapping(self, responsible_party_id: str) -> None:
        party = require_text(responsible_party_id, "responsible_party_id")
        if not await self.mappings.delete_mapping(party):
            raise NotFoundError(
                f"No person mapping for responsible party '{party}'",
                responsible_party_id=party
            )
        logger.info("person_mapping_deleted", responsible_party_id=party)

    async def parties_for_person(self, person_id: str) -> List[str]:
        return await self.mappings.parties_for_person(person_id)

    async def known_persons(self) -> List[str]:
        return await self.mappings.known_persons()
