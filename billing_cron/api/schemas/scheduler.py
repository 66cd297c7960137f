"""
Scheduler control schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SchedulerStopRequest(BaseModel):
    """Request to stop the scheduler."""

    timeout: float = Field(
        default=30.0,
        ge=0,
        le=300,
        description="Seconds to wait for in-flight runs"
    )


class SchedulerActionResponse(BaseModel):
    """Response from start/stop."""

    success: bool
    message: str
    recovered_runs: Optional[int] = Field(
        default=None,
        description="Runs closed by startup recovery"
    )


class SchedulerStatusResponse(BaseModel):
    scheduler_running: bool
    state: str = Field(..., description="STOPPED / RUNNING / STOPPING")
    poll_interval: float
    last_tick_at: Optional[str] = None
    running_jobs: list[str] = Field(default_factory=list)
