"""
Structured job results.

One result class per job type. History stores them as JSON next to the job
type, and `result_from_dict` rebuilds the matching class on read, so result
payloads stay typed end to end.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Optional


@dataclass
class JobResult:
    """Base class for per-job-type results."""

    errors: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        """Number of items the handler changed successfully."""
        return 0

    @property
    def ok(self) -> bool:
        """False when every attempted item failed."""
        return not (self.errors and self.processed == 0)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "JobResult":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class VoucherSyncResult(JobResult):
    synced: int = 0
    expired: int = 0

    @property
    def processed(self) -> int:
        return self.synced + self.expired


@dataclass
class AgentSalesResult(JobResult):
    recorded: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.recorded


@dataclass
class InvoiceGenerateResult(JobResult):
    generated: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.generated


@dataclass
class InvoiceReminderResult(JobResult):
    sent: int = 0
    skipped: int = 0
    note: Optional[str] = None

    @property
    def processed(self) -> int:
        return self.sent


@dataclass
class AutoIsolirResult(JobResult):
    isolated: int = 0

    @property
    def processed(self) -> int:
        return self.isolated


@dataclass
class NotificationCheckResult(JobResult):
    overdue_invoices: int = 0
    expired_users: int = 0
    pending_registrations: int = 0

    @property
    def total(self) -> int:
        return self.overdue_invoices + self.expired_users + self.pending_registrations

    @property
    def processed(self) -> int:
        return self.total

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["total"] = self.total
        return data


@dataclass
class TelegramBackupResult(JobResult):
    sent: bool = False
    filename: Optional[str] = None
    deleted_backups: int = 0
    note: Optional[str] = None

    @property
    def processed(self) -> int:
        return 1 if self.sent else 0


@dataclass
class TelegramHealthResult(JobResult):
    sent: bool = False
    status: Optional[str] = None
    note: Optional[str] = None

    @property
    def processed(self) -> int:
        return 1 if self.sent else 0


# Keyed by JobType value.
RESULT_TYPES: dict[str, type[JobResult]] = {
    "voucher_sync": VoucherSyncResult,
    "agent_sales": AgentSalesResult,
    "invoice_generate": InvoiceGenerateResult,
    "invoice_reminder": InvoiceReminderResult,
    "notification_check": NotificationCheckResult,
    "auto_isolir": AutoIsolirResult,
    "telegram_backup": TelegramBackupResult,
    "telegram_health": TelegramHealthResult,
}


def result_from_dict(job_type: str, data: Optional[dict]) -> Optional[JobResult]:
    """Rebuild the result class registered for `job_type`."""
    if data is None:
        return None
    return RESULT_TYPES.get(job_type, JobResult).from_dict(data)
