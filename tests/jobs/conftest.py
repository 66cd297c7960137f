"""
Job handler test fixtures.

Handlers run against a real BillingStore in tmp_path; the dispatcher,
network control and Telegram client are in-memory fakes.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import pytest

from billing_cron.jobs.backup import BackupService
from billing_cron.jobs.collaborators import NetworkControl, StoreNotificationChecker, StoreUsageSource
from billing_cron.jobs.handlers import BillingJobs
from billing_cron.jobs.store import BillingStore
from billing_cron.notify.entities import DispatchResult, Provider
from billing_cron.scheduler.errors import ExternalServiceError


class FakeDispatcher:
    """Records sends; succeeds unless told otherwise."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail_with: Optional[str] = None
        self._provider = Provider.create(name="fake", type="fonnte", api_url="https://fake.example")

    def send(self, phone: str, message: str) -> DispatchResult:
        self.sent.append((phone, message))
        if self.fail_with is not None:
            return DispatchResult(success=False, error=self.fail_with)
        return DispatchResult(success=True, chosen_provider=self._provider)


class FakeNetworkControl(NetworkControl):
    def __init__(self):
        self.suspended: list[str] = []
        self.failing: set[str] = set()

    def suspend(self, username: str) -> None:
        if username in self.failing:
            raise ExternalServiceError("network-control", "HTTP 500: router busy")
        self.suspended.append(username)


class FakeTelegram:
    def __init__(self):
        self.messages: list[tuple[str, Optional[int]]] = []
        self.documents: list[tuple[Path, Optional[str], Optional[int]]] = []
        self.error: Optional[Exception] = None

    def send_message(self, text: str, topic_id: Optional[int] = None) -> dict:
        if self.error is not None:
            raise self.error
        self.messages.append((text, topic_id))
        return {"ok": True}

    def send_document(self, path, caption: Optional[str] = None, topic_id: Optional[int] = None) -> dict:
        if self.error is not None:
            raise self.error
        self.documents.append((Path(path), caption, topic_id))
        return {"ok": True}


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def network() -> FakeNetworkControl:
    return FakeNetworkControl()


@pytest.fixture
def telegram() -> FakeTelegram:
    return FakeTelegram()


@pytest.fixture
def backups(settings) -> BackupService:
    return BackupService(settings.billing_db_path, settings.backup_dir)


@pytest.fixture
def make_jobs(store, dispatcher, network, settings, clock, history, backups):
    """Factory for BillingJobs, with optional Settings overrides."""

    def _make(telegram=None, **overrides) -> BillingJobs:
        effective = replace(settings, **overrides) if overrides else settings
        return BillingJobs(
            store=store,
            dispatcher=dispatcher,
            settings=effective,
            usage=StoreUsageSource(store),
            network=network,
            checker=StoreNotificationChecker(store, clock=clock),
            telegram=telegram,
            backups=backups,
            history=history,
            clock=clock,
        )

    return _make


@pytest.fixture
def jobs(make_jobs) -> BillingJobs:
    return make_jobs()


@pytest.fixture
def voucher_profile(store: BillingStore) -> str:
    return store.add_voucher_profile("1 Day", validity_value=1, validity_unit="DAYS", reseller_fee=3000)


@pytest.fixture
def add_active_voucher(store: BillingStore, voucher_profile):
    """Voucher already past its first login."""

    def _add(code: str, batch_code: Optional[str], first_login_at: datetime) -> str:
        store.add_voucher(code, voucher_profile, batch_code=batch_code)
        store.activate_voucher(code, first_login_at, first_login_at + timedelta(days=1))
        return code

    return _add
