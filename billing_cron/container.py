"""
Service wiring.

CronService builds every component from Settings and owns the process
lifecycle: startup recovery, scheduler start and graceful stop.

Usage:
    service = CronService.create(load_settings())
    service.start()
    run = service.orchestrator.run("voucher_sync")
    service.stop()
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from billing_cron.infra.config import Settings
from billing_cron.jobs.backup import BackupService
from billing_cron.jobs.collaborators import (
    HttpNetworkControl,
    LocalOnlyNetworkControl,
    NetworkControl,
    StoreNotificationChecker,
    StoreUsageSource,
)
from billing_cron.jobs.handlers import BillingJobs, build_registry
from billing_cron.jobs.store import BillingStore
from billing_cron.jobs.telegram import TelegramClient
from billing_cron.notify.dispatcher import NotificationDispatcher
from billing_cron.notify.registry import MessageLog, ProviderRegistry
from billing_cron.scheduler.entities import utcnow
from billing_cron.scheduler.orchestrator import Orchestrator
from billing_cron.scheduler.persistence import HistoryStore
from billing_cron.scheduler.service import Scheduler


logger = logging.getLogger(__name__)


class CronService:
    """
    Coordinates the stores, the orchestrator and the scheduler.

    Provides:
    - Component initialization and wiring
    - Startup with recovery of runs interrupted by a restart
    - Graceful shutdown
    """

    def __init__(
        self,
        settings: Settings,
        store: BillingStore,
        history: HistoryStore,
        providers: ProviderRegistry,
        dispatcher: NotificationDispatcher,
        jobs: BillingJobs,
        orchestrator: Orchestrator,
        scheduler: Scheduler,
    ):
        """
        Initialize CronService with all components.

        Use CronService.create() for convenient construction.
        """
        self.settings = settings
        self.store = store
        self.history = history
        self.providers = providers
        self.dispatcher = dispatcher
        self.jobs = jobs
        self.orchestrator = orchestrator
        self.scheduler = scheduler
        self._recovered = False

    @classmethod
    def create(
        cls,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
        network: Optional[NetworkControl] = None,
        telegram: Optional[TelegramClient] = None,
    ) -> "CronService":
        """
        Create a CronService with all components wired together.

        Args:
            settings: Process configuration
            clock: Source of the current time
            network: Overrides the network control built from settings
            telegram: Overrides the Telegram client built from settings

        Returns:
            Configured CronService
        """
        tz = settings.tz

        store = BillingStore(settings.billing_db_path)
        history = HistoryStore(settings.cron_db_path, keep=settings.history_keep)
        providers = ProviderRegistry(settings.billing_db_path)
        dispatcher = NotificationDispatcher(
            registry=providers,
            message_log=MessageLog(settings.billing_db_path),
            country_code=settings.country_code,
        )

        if network is None:
            if settings.network_control_url:
                network = HttpNetworkControl(
                    settings.network_control_url, token=settings.network_control_token
                )
            else:
                network = LocalOnlyNetworkControl()

        if telegram is None and settings.telegram_enabled:
            telegram = TelegramClient(settings.telegram_bot_token, settings.telegram_chat_id)

        jobs = BillingJobs(
            store=store,
            dispatcher=dispatcher,
            settings=settings,
            usage=StoreUsageSource(store),
            network=network,
            checker=StoreNotificationChecker(store, clock=clock, tz=tz),
            telegram=telegram,
            backups=BackupService(settings.billing_db_path, settings.backup_dir),
            history=history,
            clock=clock,
            tz=tz,
        )

        orchestrator = Orchestrator(
            registry=build_registry(jobs, backup_time=settings.backup_time),
            history=history,
            clock=clock,
            schedule_tz=tz,
        )
        scheduler = Scheduler(orchestrator, poll_interval=settings.scheduler_poll_seconds)

        return cls(
            settings=settings,
            store=store,
            history=history,
            providers=providers,
            dispatcher=dispatcher,
            jobs=jobs,
            orchestrator=orchestrator,
            scheduler=scheduler,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def recover(self) -> int:
        """
        Close runs left RUNNING by a previous process.

        Every RUNNING row is treated as abandoned, so only the process that
        owns the scheduler may call this, and only one such process may use
        a given history database. start() calls it.

        Returns:
            Number of runs marked as interrupted
        """
        if self._recovered:
            return 0
        count = self.history.mark_interrupted(self.orchestrator.clock())
        self._recovered = True
        if count:
            logger.warning(f"Recovery: {count} interrupted run(s) marked as error")
        return count

    def start(self, blocking: bool = False) -> None:
        """Run recovery, then start the tick loop."""
        self.recover()
        self.scheduler.start(blocking=blocking)

    def stop(self, timeout: float = 30.0) -> None:
        self.scheduler.stop(timeout=timeout)

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running()
