"""
Console Sync - FastAPI Application Entry Point

Reconciliation service between the local QEMU/Docker agent and the
per-user Supabase catalog.
"""

import logging
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from console_sync import __version__
from console_sync.config import settings
from console_sync.errors import ConfigurationError, SyncError
from console_sync.routers import catalog, health, sync
from console_sync.services.catalog import RemoteCatalogClient, build_supabase_client
from console_sync.services.events import ALL_TOPICS, EventBus
from console_sync.services.local_inventory import LocalAgentClient, build_inventory_adapters
from console_sync.services.orchestrator import SyncOrchestrator

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _log_notification(notification):
    logger.info(f"[{notification.type.value}] {notification.message}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Console Sync v{__version__} starting...")
    logger.info(f"Local agent: {settings.agent_url}")

    agent = LocalAgentClient(
        settings.agent_url,
        timeout=settings.agent_timeout_seconds,
        verify_ssl=settings.verify_ssl
    )
    adapters = build_inventory_adapters(agent)
    events = EventBus()
    unsubscribe = events.subscribe(ALL_TOPICS, _log_notification)

    try:
        client = build_supabase_client(settings)
    except ConfigurationError as e:
        logger.warning(f"{e.message} - sync endpoints will answer 503")
        client = None

    app.state.agent = agent
    app.state.adapters = adapters
    app.state.events = events
    app.state.supabase = client
    app.state.orchestrator = None
    if client is not None:
        app.state.orchestrator = SyncOrchestrator(
            adapters=adapters,
            catalog_factory=partial(RemoteCatalogClient, client),
            events=events,
            max_concurrent_writes=settings.max_concurrent_writes
        )

    yield

    # Cleanup
    unsubscribe()
    agent.session.close()
    logger.info("Console Sync shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Console Sync API",
    description="Keeps the console's Supabase catalog in step with the local VM/Docker agent",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_code": exc.error_code}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error": str(exc)}
    )


# Include routers
app.include_router(health.router)
app.include_router(sync.router)
app.include_router(catalog.router)


@app.get("/")
async def root():
    """Root endpoint - service info."""
    return {
        "name": "Console Sync",
        "version": __version__,
        "docs": "/docs",
        "health": "/v1/health"
    }


def run():
    """Run the application with uvicorn."""
    import uvicorn

    uvicorn.run(
        "console_sync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
