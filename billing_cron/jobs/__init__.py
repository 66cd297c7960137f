"""
Maintenance job handlers and the collaborators they act on.

- store: billing records (SQLite)
- collaborators: usage source, network control, notification checker
- telegram / backup: Telegram delivery and database backups
- handlers: one handler per JobType, plus build_registry()
"""

from .store import BillingStore, ReminderSettings
from .collaborators import (
    UsageSource,
    StoreUsageSource,
    NetworkControl,
    HttpNetworkControl,
    LocalOnlyNetworkControl,
    NotificationChecker,
    StoreNotificationChecker,
)
from .telegram import TelegramClient
from .backup import BackupService
from .handlers import BillingJobs, build_registry

__all__ = [
    # Store
    "BillingStore",
    "ReminderSettings",
    # Collaborators
    "UsageSource",
    "StoreUsageSource",
    "NetworkControl",
    "HttpNetworkControl",
    "LocalOnlyNetworkControl",
    "NotificationChecker",
    "StoreNotificationChecker",
    "TelegramClient",
    "BackupService",
    # Handlers
    "BillingJobs",
    "build_registry",
]
