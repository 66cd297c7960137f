"""
FastAPI application entry point.

Operator API for the maintenance jobs: run history, manual triggers,
scheduler control and WhatsApp delivery. The scheduler starts with the
application when SCHEDULER_ENABLED is true and stops on shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI

from billing_cron import __version__
from billing_cron.container import CronService
from billing_cron.infra.config import load_settings

from .dependencies.auth import verify_api_key
from .routers import cron, scheduler, whatsapp


logger = logging.getLogger(__name__)

# Tag metadata for Swagger UI
tags_metadata = [
    {
        "name": "cron",
        "description": "Job history, manual triggers and per-job status",
    },
    {
        "name": "scheduler",
        "description": "Scheduler control plane - start, stop and inspect the tick loop",
    },
    {
        "name": "whatsapp",
        "description": "WhatsApp delivery with provider failover and provider configuration",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Builds the CronService from the environment unless one was injected
    - Starts the scheduler when enabled, stops it on shutdown

    Startup recovery belongs to the process that owns the scheduler; with
    the scheduler disabled a separate worker may hold live RUNNING rows in
    the same history database, so they are left alone here.
    """
    if getattr(app.state, "service", None) is None:
        app.state.service = CronService.create(load_settings())

    service: CronService = app.state.service
    if service.settings.scheduler_enabled:
        service.start()
    else:
        logger.info("Scheduler disabled; use POST /scheduler/start or the worker command to run it")

    yield

    service.stop()


def create_app(service: Optional[CronService] = None) -> FastAPI:
    """
    Build the application.

    Args:
        service: Pre-built service (tests); built from the environment at
            startup when None
    """
    app = FastAPI(
        title="Billing Cron API",
        lifespan=lifespan,
        description="""
## Billing Cron API

Recurring maintenance jobs for the subscriber billing platform.

### Authentication
When `API_AUTH_ENABLED=true`, all endpoints except `/health` require an
`X-API-Key` header matching the `API_KEY` environment variable.

### Usage
```bash
# Start server
uvicorn billing_cron.api.main:app --host 127.0.0.1 --port 8000

# Trigger a job
curl -X POST http://localhost:8000/cron \\
  -H "Content-Type: application/json" \\
  -d '{"type": "voucher_sync"}'
```
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=tags_metadata,
    )
    app.state.service = service

    # Health check - NO authentication (operational endpoint)
    @app.get("/health")
    async def health_check():
        """Health check endpoint. Not authenticated."""
        return {"status": "ok", "version": __version__}

    auth_dependency = [Depends(verify_api_key)]

    app.include_router(
        cron.router, prefix="/cron", tags=["cron"], dependencies=auth_dependency
    )
    app.include_router(
        scheduler.router, prefix="/scheduler", tags=["scheduler"], dependencies=auth_dependency
    )
    app.include_router(
        whatsapp.router, prefix="/whatsapp", tags=["whatsapp"], dependencies=auth_dependency
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
