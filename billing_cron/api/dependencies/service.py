"""
CronService access for routers.

The service is created in the application lifespan and kept on
app.state, so tests can build an app around their own service.
"""

from fastapi import HTTPException, Request

from billing_cron.container import CronService


def get_cron_service(request: Request) -> CronService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Cron service not initialized")
    return service
