"""
Shared FastAPI dependencies.

Services are built once in the application lifespan and read from
app.state here, so tests can swap them with dependency_overrides.
"""

from typing import Dict, Optional

from fastapi import Depends, Header, Request
from supabase import Client

from console_sync.errors import ConfigurationError
from console_sync.models.resources import ResourceKind
from console_sync.services.auth import bearer_token, resolve_user_id
from console_sync.services.local_inventory import LocalInventoryAdapter
from console_sync.services.orchestrator import SyncOrchestrator


def get_supabase(request: Request) -> Client:
    client = getattr(request.app.state, "supabase", None)
    if client is None:
        raise ConfigurationError("Supabase is not configured")
    return client


def get_orchestrator(request: Request) -> SyncOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise ConfigurationError("Sync orchestrator is not available")
    return orchestrator


def get_adapters(request: Request) -> Dict[ResourceKind, LocalInventoryAdapter]:
    adapters = getattr(request.app.state, "adapters", None)
    if not adapters:
        raise ConfigurationError("Local agent is not configured")
    return adapters


async def get_current_user_id(
    authorization: Optional[str] = Header(None),
    client: Client = Depends(get_supabase)
) -> str:
    """User id behind the caller's Supabase access token."""
    return await resolve_user_id(client, bearer_token(authorization))
