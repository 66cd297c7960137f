"""
Next-run computation for schedule descriptors.

Pure functions only: no clock reads beyond the optional default for `now`,
no I/O.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from .entities import ScheduleDescriptor, ScheduleKind, ensure_utc, utcnow


def next_run(
    schedule: ScheduleDescriptor,
    last_run: Optional[datetime] = None,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
) -> datetime:
    """
    Compute the next instant a job with `schedule` is due.

    Args:
        schedule: The job type's schedule descriptor
        last_run: Start of the most recent run, if any
        now: Reference time when there is no last run (defaults to utcnow)
        tz: Zone in which daily HH:MM times are interpreted

    Returns:
        Timezone-aware UTC datetime. For interval/hourly schedules with no
        last run this is `now` (immediately due); otherwise it is strictly
        after the reference instant.
    """
    now = ensure_utc(now) if now is not None else utcnow()

    if schedule.kind == ScheduleKind.DAILY:
        reference = ensure_utc(last_run) if last_run is not None else now
        return _next_time_of_day(schedule, reference, tz)

    if last_run is None:
        return now

    return ensure_utc(last_run) + timedelta(minutes=schedule.every_minutes)


def _next_time_of_day(
    schedule: ScheduleDescriptor,
    reference: datetime,
    tz: tzinfo,
) -> datetime:
    hour, minute = schedule.hour_minute
    local_ref = reference.astimezone(tz)

    candidate = local_ref.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= local_ref:
        # Wall-clock arithmetic on the local date; tzinfo is reapplied.
        candidate = candidate + timedelta(days=1)

    return candidate.astimezone(timezone.utc)


def is_due(
    schedule: ScheduleDescriptor,
    last_run: Optional[datetime],
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> bool:
    """True when `now` has reached the next run instant."""
    return ensure_utc(now) >= next_run(schedule, last_run=last_run, now=now, tz=tz)
