from typing import Optional
from fastapi import APIRouter, Depends

from debt_ledger.core.auth import Operator, require_admin
from debt_ledger.db.mongo import get_db
from debt_ledger.schemas.migration import MigrationRequest, MigrationResult, MigrationStatus
from debt_ledger.services.migration_service import MigrationService, migration_control

router = APIRouter()


@router.get("/migrate", response_model=MigrationStatus)
async def get_migration_status(
    current_operator: Operator = Depends(require_admin),
    db = Depends(get_db)
):
    """How many payouts still need derived stats."""
    return await MigrationService(db).get_migration_status()


@router.post("/migrate", response_model=MigrationResult)
async def migrate_payout_stats(
    payload: Optional[MigrationRequest] = None,
    current_operator: Operator = Depends(require_admin),
    db = Depends(get_db)
):
    """Backfill derived stats on one batch of payouts. Safe to re-run."""
    payload = payload or MigrationRequest()
    return await MigrationService(db).migrate_payout_stats(
        batch_size=payload.batch_size,
        start_after=payload.start_after
    )


@router.post("/migrate/stop")
async def stop_migration(
    current_operator: Operator = Depends(require_admin)
):
    """Stop the running migration after its in-flight record."""
    return {"stop_requested": migration_control.request_stop()}
