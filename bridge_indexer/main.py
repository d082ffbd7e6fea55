"""
Bridge Indexer - Cross-Chain Bridge State API

Main application entry point.

Run with:
    uvicorn bridge_indexer.main:app
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__, runtime
from .api import events_router, public_router
from .core import ReconciliationEngine
from .db.store import EntityStore
from .observability import (
    RequestContextMiddleware,
    check_health,
    get_logger,
    get_metrics,
    setup_logging,
)

# Setup logging at import time
setup_logging()
logger = get_logger(__name__)


DESCRIPTION = """
## Cross-Chain Bridge State

Reconstructs bridge state from the ordered stream of bridge-contract
events: transfer messages, bridge controls, account pauses, limits and
validator-set governance.

### Message Lifecycle

```
PENDING → APPROVED → CONFIRMED | CONFIRMED_WITHDRAW
PENDING | APPROVED → CANCELED
```

### Storage Backends

- **InMemoryEntityStore**: Development/testing (default)
- **PostgresEntityStore**: Production with full durability

Set `DATABASE_URL` or `DATABASE_HOST` environment variables to use PostgreSQL.
"""


def create_app(store: Optional[EntityStore] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        store: EntityStore to serve. If None, the shared store from
               bridge_indexer.runtime is used (configured from environment).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        if store is None:
            app.state.entity_store = runtime.get_entity_store()
            app.state.engine = runtime.get_engine()
        else:
            app.state.entity_store = store
            app.state.engine = ReconciliationEngine(store, metrics=get_metrics())

        logger.info(
            "Application startup complete",
            store_type=type(app.state.entity_store).__name__,
            sync=app.state.entity_store.sync_status(),
        )

        yield

        if store is None:
            runtime.reset()
            logger.info("Entity store closed")

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Bridge Indexer",
        description=DESCRIPTION,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add request context middleware for logging
    app.add_middleware(RequestContextMiddleware)

    app.include_router(public_router)
    app.include_router(events_router)

    @app.get("/health", tags=["System"])
    async def health():
        """
        Basic health check endpoint.

        Returns 200 if the service is running.
        For detailed health, use /health/detailed
        """
        return {"status": "healthy", "service": "bridge-indexer"}

    @app.get("/health/detailed", tags=["System"])
    def health_detailed(request: Request):
        """
        Detailed health check.

        Checks:
        - Service liveness
        - Entity store connectivity

        Returns 200 if healthy, 503 if unhealthy.
        """
        health_status = check_health(store=request.app.state.entity_store)

        return JSONResponse(
            status_code=200 if health_status.healthy else 503,
            content={
                "status": "healthy" if health_status.healthy else "unhealthy",
                "checks": health_status.checks,
                "duration_ms": health_status.duration_ms,
            },
        )

    @app.get("/metrics", tags=["System"])
    async def metrics():
        """
        Get application metrics.

        Returns counters, gauges, and latency percentiles.
        """
        return get_metrics().get_summary()

    @app.get("/api", tags=["System"])
    async def api_info(request: Request):
        """API info."""
        return {
            "name": "Bridge Indexer API",
            "version": __version__,
            "storage_backend": type(request.app.state.entity_store).__name__,
            "endpoints": {
                "public": {
                    "messages": "/api/public/messages",
                    "message_detail": "/api/public/messages/{id}",
                    "bridge_messages": "/api/public/bridge-messages",
                    "accounts": "/api/public/accounts",
                    "account_detail": "/api/public/accounts/{address}",
                    "account_messages": "/api/public/account-messages",
                    "limits": "/api/public/limits",
                    "limit_messages": "/api/public/limit-messages",
                    "limit_proposals": "/api/public/limit-proposals",
                    "validators": "/api/public/validators",
                    "validators_proposals": "/api/public/validators-proposals",
                    "validators_lists": "/api/public/validators-lists",
                    "sync": "/api/public/sync",
                },
                "ingest": {
                    "events": "/api/events",
                },
            },
        }

    return app


app = create_app()
