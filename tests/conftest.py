"""
Pytest configuration and shared fixtures.

Base fixtures:
  - Empty SQLite databases under tmp_path
  - Mocked clock at a fixed instant
  - Settings pointing every path into tmp_path
"""

import logging
import os
from datetime import datetime, timedelta, timezone

import pytest

from billing_cron.infra.config import Settings
from billing_cron.infra.logging_config import LOGGER_NAME
from billing_cron.jobs.store import BillingStore
from billing_cron.notify.registry import MessageLog, ProviderRegistry
from billing_cron.scheduler.persistence import HistoryStore


# Fixed time for deterministic tests: a Thursday, inside the default reminder hour
FIXED_DATETIME = datetime(2026, 1, 15, 9, 30, 0, tzinfo=timezone.utc)

# Environment variables read by load_settings()
ENV_KEYS = (
    "BILLING_DB_PATH",
    "CRON_DB_PATH",
    "HISTORY_KEEP",
    "SCHEDULER_ENABLED",
    "SCHEDULER_POLL_SECONDS",
    "SCHEDULE_TIMEZONE",
    "COUNTRY_CODE",
    "ISOLIR_GRACE_DAYS",
    "INVOICE_LOOKAHEAD_DAYS",
    "APP_BASE_URL",
    "NETWORK_CONTROL_URL",
    "NETWORK_CONTROL_TOKEN",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "TELEGRAM_BACKUP_TOPIC_ID",
    "TELEGRAM_HEALTH_TOPIC_ID",
    "BACKUP_DIR",
    "BACKUP_TIME",
    "BACKUP_KEEP_LAST",
    "LOG_LEVEL",
    "LOG_DIR",
    "API_AUTH_ENABLED",
    "API_KEY",
)


class MockClock:
    """
    Mock clock for deterministic time control.

    - Starts at FIXED_DATETIME (aware UTC)
    - Advances only when explicitly ticked
    - Callable, so it can be passed wherever a clock function is expected
    """

    def __init__(self, start_time: datetime = FIXED_DATETIME):
        self._current = start_time

    def __call__(self) -> datetime:
        return self._current

    def now(self) -> datetime:
        return self._current

    def tick(self, seconds: float = 1) -> None:
        """Advance time by specified seconds."""
        self._current += timedelta(seconds=seconds)

    def set(self, time: datetime) -> None:
        """Set time to specific value."""
        self._current = time


@pytest.fixture(autouse=True, scope="function")
def clean_environment():
    """
    Remove configuration variables for the duration of each test.

    load_dotenv() writes into os.environ, so values loaded by one test are
    removed again afterwards.
    """
    original = {key: os.environ.get(key) for key in ENV_KEYS}
    for key in ENV_KEYS:
        os.environ.pop(key, None)

    yield

    for key, value in original.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture
def reset_package_logger():
    """Undo setup_logging() so later tests see the default logger setup."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        billing_db_path=str(tmp_path / "billing.db"),
        cron_db_path=str(tmp_path / "cron.db"),
        backup_dir=str(tmp_path / "backups"),
        log_dir=str(tmp_path / "logs"),
        scheduler_enabled=False,
    )


@pytest.fixture
def store(settings) -> BillingStore:
    return BillingStore(settings.billing_db_path)


@pytest.fixture
def history(settings) -> HistoryStore:
    return HistoryStore(settings.cron_db_path, keep=settings.history_keep)


@pytest.fixture
def providers(settings) -> ProviderRegistry:
    return ProviderRegistry(settings.billing_db_path)


@pytest.fixture
def message_log(settings) -> MessageLog:
    return MessageLog(settings.billing_db_path)
