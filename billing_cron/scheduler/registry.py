"""
Static catalog of job types.

Maps every JobType to its schedule and handler. Built once at process start
and read-only afterwards; construction fails unless every JobType has an
entry.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Iterator, Mapping

from .entities import JobType, ScheduleDescriptor
from .errors import UnknownJobTypeError, ValidationError
from .results import JobResult


JobHandler = Callable[[], JobResult]


@dataclass(frozen=True)
class JobDefinition:
    """Registration entry for one job type."""

    job_type: JobType
    name: str
    description: str
    schedule: ScheduleDescriptor
    handler: JobHandler

    def to_dict(self) -> dict:
        return {
            "type": self.job_type.value,
            "name": self.name,
            "description": self.description,
            "schedule": self.schedule.to_dict(),
            "schedule_label": self.schedule.label,
        }


class JobRegistry:
    """Read-only mapping JobType -> JobDefinition."""

    def __init__(self, definitions: Iterable[JobDefinition]):
        table: dict[JobType, JobDefinition] = {}
        for definition in definitions:
            if definition.job_type in table:
                raise ValidationError(
                    f"Duplicate registration for job type {definition.job_type.value}"
                )
            table[definition.job_type] = definition

        missing = [t.value for t in JobType if t not in table]
        if missing:
            raise ValidationError(f"Job types without registration: {', '.join(missing)}")

        self._table: Mapping[JobType, JobDefinition] = MappingProxyType(table)

    def get(self, job_type: "str | JobType") -> JobDefinition:
        """
        Look up a definition.

        Raises:
            UnknownJobTypeError: If the identifier is not a registered job type
        """
        key = JobType.parse(job_type)
        try:
            return self._table[key]
        except KeyError:
            raise UnknownJobTypeError(key.value) from None

    def job_types(self) -> list[JobType]:
        """Job types in declaration order."""
        return [t for t in JobType if t in self._table]

    def __iter__(self) -> Iterator[JobDefinition]:
        return (self._table[t] for t in self.job_types())

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, job_type: object) -> bool:
        try:
            return JobType.parse(job_type) in self._table
        except UnknownJobTypeError:
            return False
