"""
Health endpoint.
"""

import asyncio
import time

from fastapi import APIRouter, Request
from pydantic import BaseModel

from console_sync import __version__

router = APIRouter(tags=["health"])

# Track startup time
_startup_time = time.time()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    uptime_seconds: int
    version: str
    agent_reachable: bool
    catalog_configured: bool


@router.get("/v1/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Reports whether the local agent answers and whether the Supabase
    catalog is configured.
    """
    agent = getattr(request.app.state, "agent", None)
    agent_reachable = await asyncio.to_thread(agent.ping) if agent else False
    catalog_configured = getattr(request.app.state, "supabase", None) is not None

    status = "healthy"
    if not catalog_configured:
        status = "no_catalog"
    elif not agent_reachable:
        status = "degraded"

    return HealthResponse(
        status=status,
        uptime_seconds=int(time.time() - _startup_time),
        version=__version__,
        agent_reachable=agent_reachable,
        catalog_configured=catalog_configured
    )
