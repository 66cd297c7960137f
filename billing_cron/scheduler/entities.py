"""
Cron Domain Entities.

- JobType: closed set of maintenance jobs
- ScheduleDescriptor: when a job type is due
- JobRun: historical record of a single execution
- HealthStatus: derived classification of recent runs

Timestamps are timezone-aware UTC datetimes inside the process and ISO-8601
strings with a trailing "Z" at the storage and API boundaries.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import re
import uuid

from .errors import InvalidOperationError, UnknownJobTypeError, ValidationError
from .results import JobResult


class JobType(str, Enum):
    """Registered maintenance job types."""

    VOUCHER_SYNC = "voucher_sync"
    AGENT_SALES = "agent_sales"
    INVOICE_GENERATE = "invoice_generate"
    INVOICE_REMINDER = "invoice_reminder"
    NOTIFICATION_CHECK = "notification_check"
    AUTO_ISOLIR = "auto_isolir"
    TELEGRAM_BACKUP = "telegram_backup"
    TELEGRAM_HEALTH = "telegram_health"

    @classmethod
    def parse(cls, value: "str | JobType") -> "JobType":
        """Convert a raw identifier into a JobType, or raise UnknownJobTypeError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownJobTypeError(str(value)) from None


class JobRunStatus(str, Enum):
    """
    JobRun status values.

    - RUNNING: handler in flight
    - SUCCESS: handler completed
    - ERROR: handler raised, or reported only failed items
    """

    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class JobTrigger(str, Enum):
    """Which path started a run."""

    SCHEDULED = "scheduled"
    MANUAL = "manual"


class HealthStatus(str, Enum):
    """Health of a job type, recomputed on every read."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ScheduleKind(str, Enum):
    INTERVAL = "interval"
    DAILY = "daily"
    HOURLY = "hourly"


_TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(s))


@dataclass(frozen=True)
class ScheduleDescriptor:
    """
    Temporal pattern for a job type.

    - interval: every `every_minutes` minutes after the last run
    - hourly: like interval, `every_minutes` defaults to 60
    - daily: once a day at `time_of_day` ("HH:MM")
    """

    kind: ScheduleKind
    time_of_day: Optional[str] = None
    every_minutes: Optional[int] = None

    def __post_init__(self):
        kind = ScheduleKind(self.kind)
        object.__setattr__(self, "kind", kind)

        if kind == ScheduleKind.DAILY:
            if not self.time_of_day or not _TIME_OF_DAY.match(self.time_of_day):
                raise ValidationError(
                    f"daily schedule requires time_of_day as HH:MM, got {self.time_of_day!r}"
                )
        elif kind == ScheduleKind.HOURLY and self.every_minutes is None:
            object.__setattr__(self, "every_minutes", 60)

        if kind != ScheduleKind.DAILY:
            if self.every_minutes is None or self.every_minutes <= 0:
                raise ValidationError(
                    f"{kind.value} schedule requires every_minutes > 0, got {self.every_minutes!r}"
                )

    @classmethod
    def daily(cls, time_of_day: str) -> "ScheduleDescriptor":
        return cls(kind=ScheduleKind.DAILY, time_of_day=time_of_day)

    @classmethod
    def hourly(cls, every_minutes: int = 60) -> "ScheduleDescriptor":
        return cls(kind=ScheduleKind.HOURLY, every_minutes=every_minutes)

    @classmethod
    def interval(cls, every_minutes: int) -> "ScheduleDescriptor":
        return cls(kind=ScheduleKind.INTERVAL, every_minutes=every_minutes)

    @property
    def hour_minute(self) -> tuple[int, int]:
        hour, minute = self.time_of_day.split(":")
        return int(hour), int(minute)

    @property
    def label(self) -> str:
        """Human readable form, e.g. 'Every 5 minutes' or 'Daily at 07:00'."""
        if self.kind == ScheduleKind.DAILY:
            return f"Daily at {self.time_of_day}"
        if self.every_minutes == 1:
            return "Every minute"
        if self.every_minutes % 60 == 0:
            hours = self.every_minutes // 60
            return "Every hour" if hours == 1 else f"Every {hours} hours"
        return f"Every {self.every_minutes} minutes"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "time_of_day": self.time_of_day,
            "every_minutes": self.every_minutes,
        }


@dataclass(frozen=True)
class JobRun:
    """
    Historical record of a single job execution.

    Created with status=RUNNING when the handler starts, then completed
    exactly once to SUCCESS or ERROR. Never touched after that.
    """

    id: str
    job_type: JobType
    status: JobRunStatus
    started_at: datetime
    trigger: JobTrigger = JobTrigger.MANUAL
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    result: Optional[JobResult] = None
    error: Optional[str] = None

    @classmethod
    def start(
        cls,
        job_type: JobType,
        started_at: datetime,
        trigger: JobTrigger = JobTrigger.MANUAL,
    ) -> "JobRun":
        """Create a new RUNNING JobRun with generated ID."""
        return cls(
            id=generate_uuid(),
            job_type=job_type,
            status=JobRunStatus.RUNNING,
            started_at=ensure_utc(started_at),
            trigger=trigger,
        )

    def is_terminal(self) -> bool:
        return self.status in (JobRunStatus.SUCCESS, JobRunStatus.ERROR)

    def complete(
        self,
        status: JobRunStatus,
        completed_at: datetime,
        result: Optional[JobResult] = None,
        error: Optional[str] = None,
    ) -> "JobRun":
        """Return the terminal version of this run."""
        if self.is_terminal():
            raise InvalidOperationError(
                f"JobRun {self.id} already completed with status {self.status.value}"
            )
        if status == JobRunStatus.RUNNING:
            raise InvalidOperationError("A run can only be completed to a terminal status")

        completed_at = ensure_utc(completed_at)
        if completed_at < self.started_at:
            raise InvalidOperationError(
                f"JobRun {self.id} completed_at precedes started_at"
            )

        delta = completed_at - self.started_at
        return replace(
            self,
            status=status,
            completed_at=completed_at,
            duration_ms=int(delta.total_seconds() * 1000),
            result=result,
            error=error,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_type": self.job_type.value,
            "status": self.status.value,
            "trigger": self.trigger.value,
            "started_at": to_iso(self.started_at),
            "completed_at": to_iso(self.completed_at),
            "duration_ms": self.duration_ms,
            "result": self.result.to_dict() if self.result is not None else None,
            "error": self.error,
        }
