"""
Orchestrator for cron jobs.

Runs a job handler inside the standard run contract:
1. Resolve the job type in the registry
2. Acquire the job type's single-flight lock
3. Append a RUNNING JobRun
4. Invoke the handler, capturing any failure
5. Persist the single terminal update

What Orchestrator MUST NOT do:
- Let a handler failure or a history write failure escape run()
- Retry a failed run (operators re-trigger manually)
- Hold a global lock (unrelated job types stay concurrent)
"""

import logging
import threading
from datetime import datetime, tzinfo, timezone
from typing import Callable, Optional

from .entities import (
    HealthStatus,
    JobRun,
    JobRunStatus,
    JobTrigger,
    JobType,
    to_iso,
    utcnow,
)
from .errors import JobAlreadyRunningError
from .health import evaluate_health
from .persistence import HistoryStore
from .registry import JobDefinition, JobRegistry
from .schedule import next_run


logger = logging.getLogger(__name__)

# Runs included in each job type's status entry.
STATUS_HISTORY_SIZE = 10


class Orchestrator:
    """
    Executes job handlers and composes the operator status view.

    Both the scheduler tick and the manual trigger call run(); the per-type
    lock guarantees at most one RUNNING JobRun per job type.
    """

    def __init__(
        self,
        registry: JobRegistry,
        history: HistoryStore,
        clock: Callable[[], datetime] = utcnow,
        schedule_tz: tzinfo = timezone.utc,
    ):
        """
        Initialize Orchestrator.

        Args:
            registry: Static job catalog
            history: JobRun history store
            clock: Source of the current time (injectable for testing)
            schedule_tz: Zone in which daily schedules are interpreted
        """
        self.registry = registry
        self.history = history
        self.clock = clock
        self.schedule_tz = schedule_tz
        self._locks: dict[JobType, threading.Lock] = {
            job_type: threading.Lock() for job_type in registry.job_types()
        }

    # =========================================================================
    # Execution
    # =========================================================================

    def run(
        self,
        job_type: "str | JobType",
        trigger: JobTrigger = JobTrigger.MANUAL,
    ) -> JobRun:
        """
        Execute one run of `job_type` and return the terminal JobRun.

        Raises:
            UnknownJobTypeError: If `job_type` is not registered
            JobAlreadyRunningError: If a run of `job_type` is in flight;
                no JobRun is created in that case

        When the RUNNING row cannot be written the handler is not invoked
        and an unpersisted ERROR run is returned.
        """
        definition = self.registry.get(job_type)
        lock = self._locks[definition.job_type]

        if not lock.acquire(blocking=False):
            raise JobAlreadyRunningError(definition.job_type.value)

        try:
            return self._execute(definition, trigger)
        finally:
            lock.release()

    def is_running(self, job_type: "str | JobType") -> bool:
        definition = self.registry.get(job_type)
        return self._locks[definition.job_type].locked()

    def _execute(self, definition: JobDefinition, trigger: JobTrigger) -> JobRun:
        job_type = definition.job_type
        started = JobRun.start(job_type, self.clock(), trigger=trigger)
        try:
            run = self.history.append(started)
        except Exception as e:
            logger.exception(f"[{job_type.value}] Could not record run start, handler skipped")
            return started.complete(
                JobRunStatus.ERROR,
                completed_at=self._completion_time(started),
                error=f"History unavailable: {e}",
            )
        logger.info(f"[{job_type.value}] Started run {run.id} ({trigger.value})")

        try:
            result = definition.handler()
        except Exception as e:
            logger.exception(f"[{job_type.value}] Run {run.id} failed")
            completed = run.complete(
                JobRunStatus.ERROR,
                completed_at=self._completion_time(run),
                error=str(e) or e.__class__.__name__,
            )
        else:
            if result.ok:
                completed = run.complete(
                    JobRunStatus.SUCCESS,
                    completed_at=self._completion_time(run),
                    result=result,
                )
            else:
                completed = run.complete(
                    JobRunStatus.ERROR,
                    completed_at=self._completion_time(run),
                    result=result,
                    error="; ".join(result.errors),
                )

        try:
            self.history.complete(completed)
        except Exception:
            # The caller still receives the terminal run.
            logger.exception(f"[{job_type.value}] Failed to persist run {run.id}")

        logger.info(
            f"[{job_type.value}] Run {run.id} finished: "
            f"status={completed.status.value}, duration_ms={completed.duration_ms}"
        )
        return completed

    def _completion_time(self, run: JobRun) -> datetime:
        # A clock that steps backwards must not break completed_at >= started_at.
        return max(self.clock(), run.started_at)

    # =========================================================================
    # Read Path
    # =========================================================================

    def next_run_for(self, job_type: "str | JobType", now: Optional[datetime] = None) -> datetime:
        """Next due instant; `now` is the reference when the job type has no history."""
        definition = self.registry.get(job_type)
        latest = self.history.latest(definition.job_type)
        return next_run(
            definition.schedule,
            last_run=latest.started_at if latest else None,
            now=now or self.clock(),
            tz=self.schedule_tz,
        )

    def health_for(self, job_type: "str | JobType") -> HealthStatus:
        definition = self.registry.get(job_type)
        return evaluate_health(self.history.list_runs(definition.job_type, limit=3))

    def job_status(self, job_type: "str | JobType", now: Optional[datetime] = None) -> dict:
        """
        Status entry for one job type.

        Returns:
            Dict with schedule metadata, last_run, last_success_at, next_run,
            health and recent_history (newest first)
        """
        definition = self.registry.get(job_type)
        now = now or self.clock()
        recent = self.history.list_runs(definition.job_type, limit=STATUS_HISTORY_SIZE)
        last_run = recent[0] if recent else None
        last_success = self.history.last_success(definition.job_type)

        return {
            **definition.to_dict(),
            "running": self.is_running(definition.job_type),
            "last_run": last_run.to_dict() if last_run else None,
            "last_success_at": to_iso(last_success.started_at) if last_success else None,
            "next_run": to_iso(next_run(
                definition.schedule,
                last_run=last_run.started_at if last_run else None,
                now=now,
                tz=self.schedule_tz,
            )),
            "health": evaluate_health(recent).value,
            "recent_history": [r.to_dict() for r in recent],
        }

    def status(self, now: Optional[datetime] = None) -> list[dict]:
        """Status entries for every registered job type."""
        now = now or self.clock()
        return [self.job_status(d.job_type, now=now) for d in self.registry]

    def list_history(
        self,
        job_type: "str | JobType | None" = None,
        limit: int = 50,
    ) -> list[JobRun]:
        if job_type is None:
            return self.history.list_runs(limit=limit)
        return self.history.list_runs(JobType.parse(job_type), limit=limit)
