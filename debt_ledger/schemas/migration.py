from typing import List, Optional

from pydantic import BaseModel, Field


class MigrationRequest(BaseModel):
    batch_size: Optional[int] = None
    start_after: Optional[str] = None


class SkippedPayout(BaseModel):
    id: str
    reason: str


class MigrationResult(BaseModel):
    updated_count: int = 0
    skipped_count: int = 0
    total_candidates: int = 0
    not_migratable: int = 0
    next_cursor: Optional[str] = None
    stopped: bool = False
    skipped: List[SkippedPayout] = Field(default_factory=list)


class MigrationStatus(BaseModel):
    total_records: int
    needs_update: int
    already_migrated: int
    not_migratable: int
    ready: bool
    running: bool = False
