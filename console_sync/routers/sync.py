"""
Sync endpoints.

Called by the console after sign-in, on manual refresh, and after any
UI action that changed local resources.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from console_sync.models.resources import ResourceKind
from console_sync.models.sync import ReconcileResult, SyncReport, SyncRequest
from console_sync.routers.deps import get_current_user_id, get_orchestrator
from console_sync.services.orchestrator import SyncOrchestrator

router = APIRouter(prefix="/v1/sync", tags=["sync"])


@router.post("", response_model=SyncReport)
async def sync_all(
    body: Optional[SyncRequest] = None,
    user_id: str = Depends(get_current_user_id),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """
    Reconcile the caller's catalog with the local agent.

    Optionally restricted to the kinds listed in the body. Partial
    failures are reported per kind, never as an HTTP error.
    """
    kinds = body.kinds if body else None
    return await orchestrator.sync_all(user_id, kinds=kinds)


@router.post("/{kind}", response_model=ReconcileResult)
async def sync_kind(
    kind: ResourceKind,
    user_id: str = Depends(get_current_user_id),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Reconcile a single resource kind."""
    return await orchestrator.sync_kind(user_id, kind)
