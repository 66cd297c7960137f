"""
External collaborators consumed by the job handlers.

Each boundary is an abstract class with one production implementation, so
tests can substitute an in-memory fake:
- UsageSource: first-login observations and access revocation for vouchers
- NetworkControl: suspends subscribers on the access network
- NotificationChecker: operator notification scan
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, tzinfo, timezone
from typing import Callable, Optional
from urllib.parse import quote

import httpx

from billing_cron.notify.providers import USER_AGENT
from billing_cron.scheduler.entities import utcnow
from billing_cron.scheduler.errors import ExternalServiceError
from billing_cron.scheduler.results import NotificationCheckResult

from .store import BillingStore, SUBSCRIBER_ACTIVE


logger = logging.getLogger(__name__)

NETWORK_CONTROL_TIMEOUT = 15.0


# =============================================================================
# Usage source
# =============================================================================

class UsageSource(ABC):
    """Accounting data for voucher codes."""

    @abstractmethod
    def first_login_at(self, code: str) -> Optional[datetime]:
        """Start of the first observed session, or None if never used."""

    @abstractmethod
    def revoke(self, code: str) -> None:
        """Remove network access for the code."""


class StoreUsageSource(UsageSource):
    """Reads sessions and credentials from the billing database."""

    def __init__(self, store: BillingStore):
        self.store = store

    def first_login_at(self, code: str) -> Optional[datetime]:
        return self.store.first_session_start(code)

    def revoke(self, code: str) -> None:
        if self.store.revoke_access(code):
            logger.info(f"[Usage] Access revoked for {code}")


# =============================================================================
# Network control
# =============================================================================

class NetworkControl(ABC):
    """Access network control plane."""

    @abstractmethod
    def suspend(self, username: str) -> None:
        """
        Isolate a subscriber on the network.

        Raises:
            ExternalServiceError: If the control plane rejects the request
        """


class HttpNetworkControl(NetworkControl):
    """Calls POST {base_url}/subscribers/{username}/suspend."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = NETWORK_CONTROL_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        headers = {"User-Agent": USER_AGENT}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.Client(timeout=self.timeout, headers=headers, transport=self._transport)

    def suspend(self, username: str) -> None:
        try:
            with self._client() as client:
                response = client.post(
                    f"{self.base_url}/subscribers/{quote(username, safe='')}/suspend",
                    json={"reason": "payment_overdue"},
                )
        except httpx.TimeoutException:
            raise ExternalServiceError("network-control", f"Timeout after {self.timeout}s") from None
        except httpx.RequestError as e:
            raise ExternalServiceError("network-control", f"Request error: {str(e)}") from e

        if not response.is_success:
            raise ExternalServiceError(
                "network-control", f"HTTP {response.status_code}: {response.text[:200]}"
            )
        logger.info(f"[NetworkControl] Suspended {username}")


class LocalOnlyNetworkControl(NetworkControl):
    """Used when no control plane is configured; isolation stays local."""

    def suspend(self, username: str) -> None:
        logger.warning(f"[NetworkControl] Not configured, {username} isolated locally only")


# =============================================================================
# Notification checker
# =============================================================================

class NotificationChecker(ABC):
    @abstractmethod
    def check(self) -> NotificationCheckResult:
        ...


class StoreNotificationChecker(NotificationChecker):
    """
    Scans the billing store and writes operator notifications.

    - overdue_invoices: PENDING invoices past their due date, marked OVERDUE
    - expired_users: active subscribers whose period ends today
    - pending_registrations: registrations not announced before
    """

    def __init__(
        self,
        store: BillingStore,
        clock: Callable[[], datetime] = utcnow,
        tz: tzinfo = timezone.utc,
    ):
        self.store = store
        self.clock = clock
        self.tz = tz

    def check(self) -> NotificationCheckResult:
        now = self.clock().astimezone(self.tz)
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        result = NotificationCheckResult()

        for invoice in self.store.list_pending_invoices_due_before(now.date()):
            if self.store.mark_invoice_overdue(invoice.id):
                result.overdue_invoices += 1
                self.store.add_notification(
                    type="invoice_overdue",
                    title="Invoice Overdue",
                    message=(
                        f"Invoice {invoice.invoice_number} for "
                        f"{invoice.customer_name or invoice.username} is overdue"
                    ),
                    link=f"/invoices/{invoice.id}",
                    created_at=now,
                )

        expiring = self.store.list_subscribers_expiring_between(
            day_start, day_start + timedelta(days=1) - timedelta(microseconds=1)
        )
        for subscriber in expiring:
            if subscriber.status != SUBSCRIBER_ACTIVE:
                continue
            result.expired_users += 1
            link = f"/subscribers/{subscriber.id}"
            if not self.store.has_notification("user_expired", link, since=day_start):
                self.store.add_notification(
                    type="user_expired",
                    title="User Expiring Today",
                    message=f"User {subscriber.username} ({subscriber.name}) is expiring today",
                    link=link,
                    created_at=now,
                )

        for registration in self.store.list_pending_registrations():
            link = f"/registrations/{registration['id']}"
            if self.store.has_notification("new_registration", link):
                continue
            result.pending_registrations += 1
            self.store.add_notification(
                type="new_registration",
                title="New Registration Request",
                message=(
                    f"{registration['name']} ({registration['phone']}) "
                    f"requested service registration"
                ),
                link=link,
                created_at=now,
            )

        logger.info(
            f"[NotificationCheck] overdue={result.overdue_invoices}, "
            f"expiring={result.expired_users}, registrations={result.pending_registrations}"
        )
        return result
