"""
Notification dispatcher with provider failover.

Active providers are tried one at a time in priority order. The first
success wins; every failure is recorded as a DispatchAttempt and the next
provider is tried. A send never raises for provider failures: the outcome
is always a DispatchResult.
"""

import logging
import re
from typing import Callable, Optional

import httpx

from billing_cron.scheduler.errors import NotFoundError

from .entities import DispatchAttempt, DispatchResult, Provider
from .providers import USER_AGENT, ProviderError, send_via_provider
from .registry import MessageLog, ProviderRegistry


logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_CODE = "62"
TEST_MESSAGE = "Test message from billing cron. If you received this, the provider works."

ClientFactory = Callable[[Provider], httpx.Client]


def default_client_factory(provider: Provider) -> httpx.Client:
    return httpx.Client(
        timeout=provider.timeout_seconds,
        headers={"User-Agent": USER_AGENT},
    )


def normalize_phone(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Normalize a phone number to international digits.

    "0812-3456" -> "628123456", "8123456" -> "628123456".
    """
    digits = re.sub(r"[^0-9]", "", phone)
    if digits.startswith("0"):
        digits = country_code + digits[1:]
    if not digits.startswith(country_code):
        digits = country_code + digits
    return digits


class NotificationDispatcher:
    """Sends messages through the active providers with failover."""

    def __init__(
        self,
        registry: ProviderRegistry,
        message_log: Optional[MessageLog] = None,
        country_code: str = DEFAULT_COUNTRY_CODE,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.registry = registry
        self.message_log = message_log
        self.country_code = country_code
        self._client_factory = client_factory or default_client_factory

    def send(self, phone: str, message: str) -> DispatchResult:
        """
        Deliver a message through the first provider that accepts it.

        Args:
            phone: Destination number in any local or international format
            message: Message text

        Returns:
            DispatchResult with one attempt per provider tried
        """
        target = normalize_phone(phone, self.country_code)
        providers = self.registry.list_active()

        if not providers:
            logger.warning("[WhatsApp] No active provider configured")
            return DispatchResult(success=False, error="No active WhatsApp provider configured")

        attempts: list[DispatchAttempt] = []
        for provider in providers:
            attempt = self._attempt(provider, target, message)
            attempts.append(attempt)
            if attempt.success:
                logger.info(f"[WhatsApp] Sent to {target} via {provider.name}")
                return DispatchResult(success=True, chosen_provider=provider, attempts=attempts)
            logger.warning(f"[WhatsApp] {provider.name} failed: {attempt.error}, trying next provider")

        tried = ", ".join(f"{a.provider_name}: {a.error}" for a in attempts)
        logger.error(f"[WhatsApp] All providers failed for {target}")
        return DispatchResult(
            success=False,
            attempts=attempts,
            error=f"All providers failed. {tried}",
        )

    def test_provider(self, provider_id: str, phone: str, message: str = TEST_MESSAGE) -> DispatchAttempt:
        """
        Send a single message through one provider, bypassing failover.

        Raises:
            NotFoundError: If the provider doesn't exist
        """
        provider = self.registry.get(provider_id)
        if provider is None:
            raise NotFoundError("Provider", provider_id)
        return self._attempt(provider, normalize_phone(phone, self.country_code), message)

    def _attempt(self, provider: Provider, phone: str, message: str) -> DispatchAttempt:
        response_meta = None
        error: Optional[str] = None

        try:
            with self._client_factory(provider) as client:
                response_meta = send_via_provider(client, provider, phone, message)
        except ProviderError as e:
            error = e.message
        except httpx.TimeoutException:
            error = f"Timeout after {provider.timeout_seconds}s"
        except httpx.RequestError as e:
            error = f"Request error: {str(e)}"
        except Exception as e:
            logger.exception(f"[WhatsApp] Unexpected error from {provider.name}")
            error = f"Unexpected error: {str(e)}"

        attempt = DispatchAttempt(
            provider_id=provider.id,
            provider_name=provider.name,
            provider_type=provider.type,
            success=error is None,
            error=error,
            response_meta=response_meta,
        )
        self._log(phone, message, provider, attempt)
        return attempt

    def _log(self, phone: str, message: str, provider: Provider, attempt: DispatchAttempt) -> None:
        if self.message_log is None:
            return
        try:
            self.message_log.record(
                phone=phone,
                message=message,
                status="sent" if attempt.success else "failed",
                provider=provider,
                response=attempt.response_meta if attempt.success else {"error": attempt.error},
            )
        except Exception as e:
            logger.error(f"[WhatsApp] Failed to write message log: {e}")
