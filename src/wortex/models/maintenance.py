"""
Pydantic models for ledger maintenance (reconciliation).
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

REASON_WORKTREE_MISSING = "worktree missing"
REASON_WINDOW_MISSING = "window missing"
REASON_DUPLICATE_BRANCH = "duplicate branch"


class StaleEntry(BaseModel):
    """A ledger entry whose external resources are gone."""

    id: UUID = Field(..., description="Id of the stale entry")
    branch: str = Field(..., description="Branch of the stale entry")
    reasons: list[str] = Field(
        default_factory=list,
        description="Why the entry is considered stale"
    )


class ReconcileReport(BaseModel):
    """Report generated after a reconciliation pass."""

    timestamp: datetime = Field(..., description="When the scan was performed")
    dry_run: bool = Field(..., description="Whether this was a dry run")
    entries_scanned: int = Field(default=0, ge=0)
    stale: list[StaleEntry] = Field(
        default_factory=list,
        description="Entries found stale by the scan"
    )
    removed_ids: list[UUID] = Field(
        default_factory=list,
        description="Entries actually removed from the ledger"
    )

    @property
    def stale_ids(self) -> list[UUID]:
        return [s.id for s in self.stale]
