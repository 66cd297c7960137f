"""Health classification over the most recent runs of a job type."""

from typing import Sequence

from .entities import HealthStatus, JobRun, JobRunStatus

HEALTH_WINDOW = 3


def evaluate_health(recent_runs: Sequence[JobRun]) -> HealthStatus:
    """
    Classify health from runs ordered most-recent-first.

    Only terminal runs among the first HEALTH_WINDOW entries count; a run
    still in flight is neither a failure nor a success.

    0 failures -> healthy, 1 -> degraded, 2 or more -> unhealthy.
    """
    window = recent_runs[:HEALTH_WINDOW]
    failures = sum(
        1 for run in window
        if run.is_terminal() and run.status == JobRunStatus.ERROR
    )

    if failures >= 2:
        return HealthStatus.UNHEALTHY
    if failures == 1:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
