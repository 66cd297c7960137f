"""
Maintenance job handlers.

BillingJobs holds the collaborators and exposes one handler per JobType.
Each handler returns its structured result and aggregates per-item failures
into `errors` instead of stopping at the first one. build_registry() binds
the handlers to their default schedules.

Re-running a handler is safe: every transition it makes is conditional on
the current state, so work already done is observed and skipped.
"""

import calendar
import logging
import secrets
from datetime import datetime, timedelta, tzinfo, timezone
from typing import Callable, Optional

from billing_cron.infra.config import Settings
from billing_cron.notify.dispatcher import NotificationDispatcher
from billing_cron.notify.templates import format_due_date, format_rupiah, render_template
from billing_cron.scheduler.entities import JobType, ScheduleDescriptor, utcnow
from billing_cron.scheduler.health import HEALTH_WINDOW, evaluate_health
from billing_cron.scheduler.persistence import HistoryStore
from billing_cron.scheduler.registry import JobDefinition, JobRegistry
from billing_cron.scheduler.results import (
    AgentSalesResult,
    AutoIsolirResult,
    InvoiceGenerateResult,
    InvoiceReminderResult,
    NotificationCheckResult,
    TelegramBackupResult,
    TelegramHealthResult,
    VoucherSyncResult,
)

from .backup import BackupService
from .collaborators import NetworkControl, NotificationChecker, UsageSource
from .store import VOUCHER_ACTIVE, VOUCHER_WAITING, BillingStore
from .telegram import TelegramClient, backup_caption, health_report, health_status


logger = logging.getLogger(__name__)


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_expiry(first_login_at: datetime, validity_value: int, validity_unit: str) -> datetime:
    """Expiry of a voucher whose validity starts at its first login."""
    unit = validity_unit.upper()
    if unit == "MINUTES":
        return first_login_at + timedelta(minutes=validity_value)
    if unit == "HOURS":
        return first_login_at + timedelta(hours=validity_value)
    if unit == "DAYS":
        return first_login_at + timedelta(days=validity_value)
    if unit == "MONTHS":
        return add_months(first_login_at, validity_value)
    raise ValueError(f"Unknown validity unit: {validity_unit}")


def agent_name_from_batch(batch_code: Optional[str]) -> Optional[str]:
    """Agent batches are named '<agent>-<suffix>'; other batches have no agent."""
    if not batch_code or "-" not in batch_code:
        return None
    return batch_code.split("-")[0]


class BillingJobs:
    """
    Handlers for every maintenance job.

    Args:
        store: Billing records
        dispatcher: WhatsApp delivery, used by invoice reminders
        settings: Business rules (grace days, lookahead, base URL, Telegram topics)
        usage: Accounting source for voucher reconciliation
        network: Control plane for subscriber isolation
        checker: Operator notification scan
        telegram: Telegram client, None when Telegram is not configured
        backups: Backup service for the billing database
        history: JobRun history, used for per-job health in the health report
        clock: Source of the current time (injectable for testing)
        tz: Zone in which calendar days are interpreted
    """

    def __init__(
        self,
        store: BillingStore,
        dispatcher: NotificationDispatcher,
        settings: Settings,
        usage: UsageSource,
        network: NetworkControl,
        checker: NotificationChecker,
        telegram: Optional[TelegramClient] = None,
        backups: Optional[BackupService] = None,
        history: Optional[HistoryStore] = None,
        clock: Callable[[], datetime] = utcnow,
        tz: tzinfo = timezone.utc,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.settings = settings
        self.usage = usage
        self.network = network
        self.checker = checker
        self.telegram = telegram
        self.backups = backups
        self.history = history
        self.clock = clock
        self.tz = tz

    def _local_now(self) -> datetime:
        return self.clock().astimezone(self.tz)

    def _day_start(self, now: datetime) -> datetime:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)

    # =========================================================================
    # Vouchers
    # =========================================================================

    def voucher_sync(self) -> VoucherSyncResult:
        """WAITING -> ACTIVE on first login, ACTIVE -> EXPIRED past expiry."""
        now = self.clock()
        result = VoucherSyncResult()

        for voucher in self.store.list_vouchers(VOUCHER_WAITING):
            try:
                first_login = self.usage.first_login_at(voucher.code)
                if first_login is None:
                    continue
                expires_at = compute_expiry(
                    first_login, voucher.validity_value, voucher.validity_unit
                )
                if self.store.activate_voucher(voucher.code, first_login, expires_at):
                    result.synced += 1
            except Exception as e:
                logger.warning(f"[VoucherSync] {voucher.code} activation failed: {e}")
                result.errors.append(f"{voucher.code}: {e}")

        # Revoke before the status change: a failed revoke leaves the voucher
        # ACTIVE, so the next run retries it.
        for voucher in self.store.list_expired_active_vouchers(now):
            try:
                self.usage.revoke(voucher.code)
                if self.store.expire_voucher(voucher.code):
                    result.expired += 1
            except Exception as e:
                logger.warning(f"[VoucherSync] {voucher.code} expiry failed: {e}")
                result.errors.append(f"{voucher.code}: {e}")

        logger.info(f"[VoucherSync] synced={result.synced}, expired={result.expired}")
        return result

    def agent_sales(self) -> AgentSalesResult:
        """Record one sale per used agent voucher, valued at the profile's reseller fee."""
        result = AgentSalesResult()

        for voucher in self.store.list_vouchers(VOUCHER_ACTIVE):
            agent_name = agent_name_from_batch(voucher.batch_code)
            if agent_name is None or voucher.first_login_at is None:
                continue
            try:
                if self.store.has_agent_sale(voucher.code):
                    result.skipped += 1
                    continue
                agent = self.store.get_agent_by_name(agent_name)
                if agent is None:
                    logger.debug(f"[AgentSales] No agent {agent_name} for {voucher.code}")
                    result.skipped += 1
                    continue
                recorded = self.store.record_agent_sale(
                    agent_id=agent["id"],
                    voucher_code=voucher.code,
                    profile_name=voucher.profile_name,
                    amount=voucher.reseller_fee,
                    created_at=voucher.first_login_at,
                )
                if recorded:
                    result.recorded += 1
                else:
                    result.skipped += 1
            except Exception as e:
                logger.warning(f"[AgentSales] {voucher.code} failed: {e}")
                result.errors.append(f"{voucher.code}: {e}")

        logger.info(f"[AgentSales] recorded={result.recorded}, skipped={result.skipped}")
        return result

    # =========================================================================
    # Invoices
    # =========================================================================

    def invoice_generate(self) -> InvoiceGenerateResult:
        """One invoice per subscriber expiring within the lookahead window."""
        now = self._local_now()
        start = self._day_start(now)
        end = start + timedelta(days=self.settings.invoice_lookahead_days + 1) - timedelta(microseconds=1)
        result = InvoiceGenerateResult()

        for subscriber in self.store.list_subscribers_expiring_between(start, end):
            try:
                due_date = subscriber.expired_at.astimezone(self.tz).date()
                if self.store.has_unpaid_invoice(subscriber.id):
                    result.skipped += 1
                    continue
                if self.store.has_invoice_for_due_date(subscriber.id, due_date):
                    result.skipped += 1
                    continue

                token = secrets.token_hex(32)
                invoice = self.store.create_invoice(
                    subscriber_id=subscriber.id,
                    invoice_number=self.store.next_invoice_number(now),
                    amount=subscriber.price,
                    due_date=due_date,
                    payment_token=token,
                    payment_link=f"{self.settings.app_base_url}/pay/{token}",
                    created_at=now,
                )
                logger.info(f"[InvoiceGenerate] {invoice.invoice_number} for {subscriber.username}")
                result.generated += 1
            except Exception as e:
                logger.warning(f"[InvoiceGenerate] {subscriber.username} failed: {e}")
                result.errors.append(f"{subscriber.username}: {e}")

        logger.info(f"[InvoiceGenerate] generated={result.generated}, skipped={result.skipped}")
        return result

    def invoice_reminder(self) -> InvoiceReminderResult:
        """Send configured reminders for PENDING invoices, once per reminder day."""
        reminder = self.store.get_reminder_settings()
        if not reminder.enabled:
            return InvoiceReminderResult(note="Invoice reminders disabled")

        # Any run from the reminder hour onward sends what is still unsent
        # today; sent_reminders keeps later runs from repeating a message.
        now = self._local_now()
        if now.hour < reminder.reminder_hour:
            return InvoiceReminderResult(
                note=f"Before reminder hour ({reminder.reminder_hour:02d}:00)"
            )

        today = now.date()
        company = self.store.get_company()
        result = InvoiceReminderResult()

        for day in reminder.reminder_days:
            due_date = today - timedelta(days=day)
            for invoice in self.store.list_pending_invoices_due_on(due_date):
                if day in invoice.sent_reminders or not invoice.customer_phone:
                    result.skipped += 1
                    continue

                message = render_template(reminder.template, {
                    "customerName": invoice.customer_name,
                    "username": invoice.username,
                    "invoiceNumber": invoice.invoice_number,
                    "amount": format_rupiah(invoice.amount),
                    "dueDate": format_due_date(invoice.due_date),
                    "daysRemaining": (invoice.due_date - today).days,
                    "paymentLink": invoice.payment_link,
                    "companyName": company["name"],
                    "companyPhone": company["phone"],
                })

                try:
                    outcome = self.dispatcher.send(invoice.customer_phone, message)
                except Exception as e:
                    logger.warning(f"[InvoiceReminder] {invoice.invoice_number} failed: {e}")
                    result.errors.append(f"{invoice.invoice_number}: {e}")
                    continue

                if outcome.success:
                    self.store.mark_reminder_sent(invoice.id, day)
                    result.sent += 1
                else:
                    result.errors.append(f"{invoice.invoice_number}: {outcome.error}")

        logger.info(f"[InvoiceReminder] sent={result.sent}, skipped={result.skipped}")
        return result

    # =========================================================================
    # Subscribers
    # =========================================================================

    def auto_isolir(self) -> AutoIsolirResult:
        """
        Isolate active subscribers past their due date plus the grace window.

        The local active -> isolated transition is claimed first; only the
        run that claims it makes the suspend call. A failed call reverts
        the claim so the next run retries.
        """
        cutoff = self.clock() - timedelta(days=self.settings.isolir_grace_days)
        result = AutoIsolirResult()

        for subscriber in self.store.list_subscribers_expired_before(cutoff):
            if not self.store.isolate_subscriber(subscriber.id):
                continue
            try:
                self.network.suspend(subscriber.username)
            except Exception as e:
                self.store.restore_subscriber(subscriber.id)
                logger.warning(f"[AutoIsolir] {subscriber.username} failed: {e}")
                result.errors.append(f"{subscriber.username}: {e}")
                continue
            logger.info(f"[AutoIsolir] Isolated {subscriber.username}")
            result.isolated += 1

        logger.info(f"[AutoIsolir] isolated={result.isolated}")
        return result

    def notification_check(self) -> NotificationCheckResult:
        return self.checker.check()

    # =========================================================================
    # Telegram
    # =========================================================================

    def telegram_backup(self) -> TelegramBackupResult:
        if self.telegram is None or self.backups is None:
            return TelegramBackupResult(note="Telegram backup disabled, skipped")

        now = self._local_now()
        backup = self.backups.create_backup(now)
        self.telegram.send_document(
            backup.path,
            caption=backup_caption(backup.filename, backup.size_bytes, now),
            topic_id=self.settings.telegram_backup_topic_id,
        )
        deleted = self.backups.prune(self.settings.backup_keep_last)
        return TelegramBackupResult(sent=True, filename=backup.filename, deleted_backups=deleted)

    def telegram_health(self) -> TelegramHealthResult:
        if self.telegram is None:
            return TelegramHealthResult(note="Telegram health report disabled, skipped")

        stats = self.store.stats()
        job_health = {}
        if self.history is not None:
            job_health = {
                job_type.value: evaluate_health(
                    self.history.list_runs(job_type, limit=HEALTH_WINDOW)
                ).value
                for job_type in JobType
            }
        status, issues = health_status(stats, job_health)
        self.telegram.send_message(
            health_report(status, issues, stats, self._local_now()),
            topic_id=self.settings.telegram_health_topic_id,
        )
        return TelegramHealthResult(sent=True, status=status)


def build_registry(jobs: BillingJobs, backup_time: str = "02:00") -> JobRegistry:
    """Bind every job type to its handler and default schedule."""
    return JobRegistry([
        JobDefinition(
            job_type=JobType.VOUCHER_SYNC,
            name="Voucher Sync",
            description="Activate vouchers on first login and expire used-up vouchers",
            schedule=ScheduleDescriptor.interval(1),
            handler=jobs.voucher_sync,
        ),
        JobDefinition(
            job_type=JobType.AGENT_SALES,
            name="Agent Sales Recording",
            description="Record agent sales for active vouchers",
            schedule=ScheduleDescriptor.interval(5),
            handler=jobs.agent_sales,
        ),
        JobDefinition(
            job_type=JobType.INVOICE_GENERATE,
            name="Invoice Generation",
            description="Generate invoices for subscribers expiring soon",
            schedule=ScheduleDescriptor.daily("07:00"),
            handler=jobs.invoice_generate,
        ),
        JobDefinition(
            job_type=JobType.INVOICE_REMINDER,
            name="Invoice Reminder",
            description="Send WhatsApp reminders for unpaid invoices",
            schedule=ScheduleDescriptor.hourly(),
            handler=jobs.invoice_reminder,
        ),
        JobDefinition(
            job_type=JobType.NOTIFICATION_CHECK,
            name="Notification Check",
            description="Check overdue invoices, expiring users and pending registrations",
            schedule=ScheduleDescriptor.interval(360),
            handler=jobs.notification_check,
        ),
        JobDefinition(
            job_type=JobType.AUTO_ISOLIR,
            name="Auto Isolir",
            description="Isolate subscribers past their due date and grace period",
            schedule=ScheduleDescriptor.hourly(),
            handler=jobs.auto_isolir,
        ),
        JobDefinition(
            job_type=JobType.TELEGRAM_BACKUP,
            name="Telegram Backup",
            description="Back up the billing database and send it to Telegram",
            schedule=ScheduleDescriptor.daily(backup_time),
            handler=jobs.telegram_backup,
        ),
        JobDefinition(
            job_type=JobType.TELEGRAM_HEALTH,
            name="Telegram Health Report",
            description="Send a system health report to Telegram",
            schedule=ScheduleDescriptor.hourly(),
            handler=jobs.telegram_health,
        ),
    ])
