"""
Job Orchestration Core.

- entities / results: JobType, JobRun, ScheduleDescriptor, per-type results
- schedule: next-run computation
- health: health classification
- persistence: JobRun history store
- registry: static job catalog
- orchestrator: run contract and status view
- service: scheduler tick loop
"""

from .entities import (
    JobType,
    JobRunStatus,
    JobTrigger,
    HealthStatus,
    ScheduleKind,
    ScheduleDescriptor,
    JobRun,
)
from .errors import (
    BillingCronError,
    ValidationError,
    UnknownJobTypeError,
    NotFoundError,
    ConflictError,
    JobAlreadyRunningError,
    InvalidOperationError,
    ExternalServiceError,
)
from .results import (
    JobResult,
    VoucherSyncResult,
    AgentSalesResult,
    InvoiceGenerateResult,
    InvoiceReminderResult,
    AutoIsolirResult,
    NotificationCheckResult,
    TelegramBackupResult,
    TelegramHealthResult,
)
from .schedule import next_run, is_due
from .health import evaluate_health
from .persistence import HistoryStore
from .registry import JobDefinition, JobRegistry
from .orchestrator import Orchestrator
from .service import Scheduler, SchedulerState

__all__ = [
    # Entities
    "JobType",
    "JobRunStatus",
    "JobTrigger",
    "HealthStatus",
    "ScheduleKind",
    "ScheduleDescriptor",
    "JobRun",
    # Errors
    "BillingCronError",
    "ValidationError",
    "UnknownJobTypeError",
    "NotFoundError",
    "ConflictError",
    "JobAlreadyRunningError",
    "InvalidOperationError",
    "ExternalServiceError",
    # Results
    "JobResult",
    "VoucherSyncResult",
    "AgentSalesResult",
    "InvoiceGenerateResult",
    "InvoiceReminderResult",
    "AutoIsolirResult",
    "NotificationCheckResult",
    "TelegramBackupResult",
    "TelegramHealthResult",
    # Schedule / Health
    "next_run",
    "is_due",
    "evaluate_health",
    # Persistence
    "HistoryStore",
    # Registry
    "JobDefinition",
    "JobRegistry",
    # Orchestration
    "Orchestrator",
    "Scheduler",
    "SchedulerState",
]
