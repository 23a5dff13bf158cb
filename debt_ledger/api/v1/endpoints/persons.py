from typing import List
from fastapi import APIRouter, Depends, status

from debt_ledger.core.auth import Operator, get_current_operator, require_admin
from debt_ledger.db.mongo import get_db
from debt_ledger.schemas.person import MappingResponse, MappingUpsert
from debt_ledger.services.person_registry import PersonRegistry

router = APIRouter()


@router.get("/mappings", response_model=List[MappingResponse])
async def list_mappings(
    current_operator: Operator = Depends(get_current_operator),
    db = Depends(get_db)
):
    """List responsible-party to person mappings."""
    mappings = await PersonRegistry(db).list_mappings()
    return [MappingResponse.from_model(m) for m in mappings]


@router.put("/mappings/{responsible_party_id}", response_model=MappingResponse)
async def upsert_mapping(
    responsible_party_id: str,
    payload: MappingUpsert,
    current_operator: Operator = Depends(require_admin),
    db = Depends(get_db)
):
    """Create or repoint a mapping. Recompute affected persons afterwards."""
    mapping = await PersonRegistry(db).upsert_mapping(
        responsible_party_id, payload.person_id, payload.display_name
    )
    return MappingResponse.from_model(mapping)


@router.delete("/mappings/{responsible_party_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_mapping(
    responsible_party_id: str,
    current_operator: Operator = Depends(require_admin),
    db = Depends(get_db)
):
    """Remove a mapping; later expenses for the party are rejected."""
    await PersonRegistry(db).delete_mapping(responsible_party_id)
