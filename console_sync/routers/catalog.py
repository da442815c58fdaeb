"""
Catalog and owned-inventory endpoints.
"""

import asyncio
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from supabase import Client

from console_sync.models.resources import ResourceKind
from console_sync.routers.deps import get_adapters, get_current_user_id, get_supabase
from console_sync.services.catalog import RemoteCatalogClient, list_all_for_user
from console_sync.services.visibility import owned_resources

router = APIRouter(prefix="/v1", tags=["catalog"])


class CatalogListResponse(BaseModel):
    kind: ResourceKind
    rows: List[Dict[str, Any]]
    count: int


class InventoryListResponse(BaseModel):
    kind: ResourceKind
    resources: List[Dict[str, Any]]
    count: int


@router.get("/catalog", response_model=Dict[str, CatalogListResponse])
async def list_catalog(
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_supabase)
):
    """All of the caller's catalog rows, grouped by kind."""
    grouped = await list_all_for_user(client, user_id)
    return {
        kind.value: CatalogListResponse(kind=kind, rows=[r.to_record() for r in rows], count=len(rows))
        for kind, rows in grouped.items()
    }


@router.get("/catalog/{kind}", response_model=CatalogListResponse)
async def list_catalog_kind(
    kind: ResourceKind,
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_supabase)
):
    """The caller's catalog rows for one kind."""
    rows = await RemoteCatalogClient(client, user_id, kind).list()
    return CatalogListResponse(kind=kind, rows=[r.to_record() for r in rows], count=len(rows))


@router.get("/inventory/{kind}", response_model=InventoryListResponse)
async def list_owned_inventory(
    kind: ResourceKind,
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_supabase),
    adapters=Depends(get_adapters)
):
    """
    Local resources of one kind that the caller owns.

    Ownership means a catalog row exists for the resource; resources
    created outside the console appear after the next sync.
    """
    local_list, rows = await asyncio.gather(
        adapters[kind].list(user_id=user_id),
        RemoteCatalogClient(client, user_id, kind).list()
    )
    visible = owned_resources(kind, local_list, rows)
    return InventoryListResponse(
        kind=kind,
        resources=[resource.model_dump(mode="json") for resource in visible],
        count=len(visible)
    )
