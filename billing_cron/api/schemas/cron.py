"""
Cron API schemas.

Supports /cron history, manual trigger and status endpoints.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CronTriggerRequest(BaseModel):
    """Manual trigger request."""

    type: str = Field(..., description="Job type, e.g. 'voucher_sync'")


class CronTriggerResponse(BaseModel):
    """
    Manual trigger outcome.

    The job type's result fields (synced, generated, isolated, ...) are
    included at the top level next to the fixed fields.
    """

    model_config = ConfigDict(extra="allow")

    success: bool = Field(..., description="Whether the run ended with status=success")
    error: Optional[str] = Field(default=None, description="Run error, if any")
    run_id: str = Field(..., description="JobRun identifier")


class JobRunResponse(BaseModel):
    """One JobRun history record."""

    id: str
    job_type: str
    status: str = Field(..., description="running / success / error")
    trigger: str = Field(..., description="scheduled / manual")
    started_at: str = Field(..., description="Start timestamp (ISO format)")
    completed_at: Optional[str] = Field(default=None, description="Completion timestamp")
    duration_ms: Optional[int] = None
    result: Optional[dict] = None
    error: Optional[str] = None


class ScheduleResponse(BaseModel):
    kind: str
    time_of_day: Optional[str] = None
    every_minutes: Optional[int] = None


class JobStatusResponse(BaseModel):
    """Status entry for one job type."""

    type: str
    name: str
    description: str
    schedule: ScheduleResponse
    schedule_label: str
    running: bool = False
    last_run: Optional[JobRunResponse] = None
    last_success_at: Optional[str] = None
    next_run: str = Field(..., description="Next due instant (ISO format)")
    health: str = Field(..., description="healthy / degraded / unhealthy")
    recent_history: List[JobRunResponse] = Field(default_factory=list)


class CronStatusResponse(BaseModel):
    scheduler_running: bool
    jobs: List[JobStatusResponse] = Field(default_factory=list)
