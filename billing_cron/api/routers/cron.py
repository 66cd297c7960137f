"""
Cron router.

- GET /cron - Run history, optionally filtered by job type
- POST /cron - Manual trigger of one job type
- GET /cron/status - Per job type status (schedule, health, next run)

Manual triggers go through the same Orchestrator.run as scheduled ticks, so
the single-flight rule applies to both: a trigger while a run of the same
type is in flight is rejected with 409.
"""

import asyncio
import functools
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from billing_cron.container import CronService
from billing_cron.scheduler.entities import JobRunStatus, JobTrigger, JobType
from billing_cron.scheduler.errors import JobAlreadyRunningError, UnknownJobTypeError

from ..dependencies.service import get_cron_service
from ..schemas.cron import (
    CronStatusResponse,
    CronTriggerRequest,
    CronTriggerResponse,
    JobRunResponse,
)


router = APIRouter()


def _parse_job_type(value: str) -> JobType:
    try:
        return JobType.parse(value)
    except UnknownJobTypeError:
        raise HTTPException(status_code=400, detail="Invalid job type") from None


@router.get("", response_model=List[JobRunResponse])
async def list_history(
    type: Optional[str] = Query(default=None, description="Filter by job type"),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum records"),
    service: CronService = Depends(get_cron_service),
):
    """Run history, newest first."""
    job_type = _parse_job_type(type) if type is not None else None
    runs = service.orchestrator.list_history(job_type, limit=limit)
    return [run.to_dict() for run in runs]


@router.post("", response_model=CronTriggerResponse)
async def trigger_job(
    request: CronTriggerRequest,
    service: CronService = Depends(get_cron_service),
):
    """
    Run a job now and return its outcome.

    The response carries the job type's result fields (e.g. synced, expired
    for voucher_sync) next to success, error and run_id.
    """
    job_type = _parse_job_type(request.type)

    loop = asyncio.get_running_loop()
    try:
        run = await loop.run_in_executor(
            None,
            functools.partial(service.orchestrator.run, job_type, JobTrigger.MANUAL),
        )
    except JobAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None

    payload = run.result.to_dict() if run.result is not None else {}
    return {
        "success": run.status == JobRunStatus.SUCCESS,
        **payload,
        "error": run.error,
        "run_id": run.id,
    }


@router.get("/status", response_model=CronStatusResponse)
async def cron_status(service: CronService = Depends(get_cron_service)):
    """Status of every registered job type."""
    return CronStatusResponse(
        scheduler_running=service.is_running,
        jobs=service.orchestrator.status(),
    )
