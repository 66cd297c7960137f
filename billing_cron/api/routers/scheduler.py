"""
Scheduler router for the tick loop.

Endpoints under /scheduler/* for start, stop, and status operations.
Start and stop are idempotent.
"""

import asyncio
import functools

from fastapi import APIRouter, Depends, HTTPException

from billing_cron.container import CronService
from billing_cron.scheduler.entities import to_iso

from ..dependencies.service import get_cron_service
from ..schemas.scheduler import (
    SchedulerActionResponse,
    SchedulerStatusResponse,
    SchedulerStopRequest,
)


router = APIRouter()


@router.post("/start", response_model=SchedulerActionResponse)
async def start_scheduler(service: CronService = Depends(get_cron_service)):
    """
    Start the tick loop.

    Idempotent: If the scheduler is already running, returns success with message.
    """
    if service.is_running:
        return SchedulerActionResponse(success=True, message="Scheduler is already running")

    try:
        recovered = service.recover()
        service.start()
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to start scheduler: {str(e)}"
        )

    return SchedulerActionResponse(
        success=True,
        message="Scheduler started successfully",
        recovered_runs=recovered or None,
    )


@router.post("/stop", response_model=SchedulerActionResponse)
async def stop_scheduler(
    request: SchedulerStopRequest = SchedulerStopRequest(),
    service: CronService = Depends(get_cron_service),
):
    """
    Stop the tick loop gracefully.

    Waits for in-flight runs to complete (no preemption).
    """
    if not service.is_running:
        return SchedulerActionResponse(success=True, message="Scheduler is already stopped")

    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, functools.partial(service.stop, timeout=request.timeout))
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to stop scheduler: {str(e)}"
        )

    return SchedulerActionResponse(success=True, message="Scheduler stopped successfully")


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(service: CronService = Depends(get_cron_service)):
    scheduler = service.scheduler
    orchestrator = service.orchestrator
    return SchedulerStatusResponse(
        scheduler_running=scheduler.is_running(),
        state=scheduler.state.value,
        poll_interval=scheduler.poll_interval,
        last_tick_at=to_iso(scheduler.last_tick_at),
        running_jobs=[
            t.value for t in orchestrator.registry.job_types() if orchestrator.is_running(t)
        ],
    )
