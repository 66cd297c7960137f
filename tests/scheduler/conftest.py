"""
Scheduler Test Fixtures.

Base fixtures:
  - Empty history database
  - Mocked clock at fixed time (from the root conftest)
  - A registry whose handlers are controllable fakes

Per-test fixtures:
  - Pre-populated runs for ordering, health and recovery tests
"""

import threading
from datetime import datetime
from typing import Callable, Optional

import pytest

from billing_cron.scheduler import (
    JobDefinition,
    JobRegistry,
    JobRun,
    JobRunStatus,
    JobType,
    Orchestrator,
    ScheduleDescriptor,
    Scheduler,
)
from billing_cron.scheduler.results import RESULT_TYPES, JobResult


# Mirrors the production schedules closely enough for due-time tests
SCHEDULES = {
    JobType.VOUCHER_SYNC: ScheduleDescriptor.interval(1),
    JobType.AGENT_SALES: ScheduleDescriptor.interval(5),
    JobType.INVOICE_GENERATE: ScheduleDescriptor.daily("07:00"),
    JobType.INVOICE_REMINDER: ScheduleDescriptor.hourly(),
    JobType.NOTIFICATION_CHECK: ScheduleDescriptor.interval(360),
    JobType.AUTO_ISOLIR: ScheduleDescriptor.hourly(),
    JobType.TELEGRAM_BACKUP: ScheduleDescriptor.daily("02:00"),
    JobType.TELEGRAM_HEALTH: ScheduleDescriptor.hourly(),
}


class MockJobHandler:
    """
    Mock job handler for testing.

    Allows controlling the execution outcome without touching billing data.
    """

    def __init__(self, job_type: JobType):
        self.job_type = job_type
        self.calls = 0
        self.result: JobResult = RESULT_TYPES[job_type.value]()
        self.error: Optional[Exception] = None
        self.started = threading.Event()
        self.release: Optional[threading.Event] = None

    def __call__(self) -> JobResult:
        self.calls += 1
        self.started.set()
        if self.release is not None:
            self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.result

    def block(self) -> threading.Event:
        """Make the next call wait until the returned event is set."""
        self.release = threading.Event()
        return self.release


@pytest.fixture
def handlers() -> dict[JobType, MockJobHandler]:
    return {job_type: MockJobHandler(job_type) for job_type in JobType}


@pytest.fixture
def registry(handlers) -> JobRegistry:
    return JobRegistry([
        JobDefinition(
            job_type=job_type,
            name=job_type.value.replace("_", " ").title(),
            description=f"Test handler for {job_type.value}",
            schedule=SCHEDULES[job_type],
            handler=handlers[job_type],
        )
        for job_type in JobType
    ])


@pytest.fixture
def orchestrator(registry, history, clock) -> Orchestrator:
    return Orchestrator(registry=registry, history=history, clock=clock)


@pytest.fixture
def scheduler(orchestrator):
    scheduler = Scheduler(orchestrator, poll_interval=0.05)
    yield scheduler
    scheduler.stop(timeout=5)
    if scheduler._pool is not None:
        scheduler._pool.shutdown(wait=True)


@pytest.fixture
def create_run(history) -> Callable[..., JobRun]:
    """Factory for stored runs in a given terminal (or running) state."""

    def _create(
        job_type: JobType,
        started_at: datetime,
        status: JobRunStatus = JobRunStatus.SUCCESS,
        error: Optional[str] = None,
    ) -> JobRun:
        run = history.append(JobRun.start(job_type, started_at))
        if status == JobRunStatus.RUNNING:
            return run
        completed = run.complete(status, completed_at=started_at, error=error)
        return history.complete(completed)

    return _create
