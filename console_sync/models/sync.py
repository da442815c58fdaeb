"""
Pydantic models for reconciliation results.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, computed_field

from console_sync.models.resources import ResourceKind


class RecordError(BaseModel):
    """A failure attributed to one record (or to a whole kind pass)."""
    kind: ResourceKind
    code: str  # SyncError.error_code
    message: str
    key: Optional[str] = None
    row_id: Optional[str] = None


class ReconcileResult(BaseModel):
    """Outcome of one reconciliation pass for one kind."""
    kind: ResourceKind
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0  # benign Conflict / NotFound outcomes
    errors: List[RecordError] = []

    @computed_field
    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def summary(self) -> Dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "skipped": self.skipped,
            "errors": len(self.errors),
        }


class SyncReport(BaseModel):
    """Aggregate of one sync_all run."""
    user_id: str
    per_kind: Dict[ResourceKind, ReconcileResult] = {}
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @computed_field
    @property
    def has_errors(self) -> bool:
        return any(result.has_errors for result in self.per_kind.values())

    def totals(self) -> Dict[str, int]:
        totals = {"created": 0, "updated": 0, "deleted": 0, "skipped": 0, "errors": 0}
        for result in self.per_kind.values():
            for field, count in result.summary().items():
                totals[field] += count
        return totals


class SyncRequest(BaseModel):
    """Body for POST /v1/sync."""
    kinds: Optional[List[ResourceKind]] = None
