"""
WhatsApp gateway clients.

One send function per ProviderType. Each takes an open httpx.Client, posts
the message the way that gateway expects, and returns the decoded response
body. Any gateway-level failure is raised as ProviderError; transport errors
surface as httpx exceptions.
"""

import logging
import re
from typing import Any, Callable

import httpx

from billing_cron.scheduler.errors import ExternalServiceError

from .entities import Provider, ProviderType


logger = logging.getLogger(__name__)

USER_AGENT = "BillingCron/1.0"


class ProviderError(ExternalServiceError):
    """Raised when a gateway rejects or fails a send."""

    def __init__(self, provider: Provider, message: str):
        self.provider_id = provider.id
        super().__init__(provider.name, message)


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_detail(response: httpx.Response) -> str:
    body = _body(response)
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)[:200]


def send_fonnte(client: httpx.Client, provider: Provider, phone: str, message: str) -> Any:
    response = client.post(
        provider.api_url,
        headers={"Authorization": provider.api_key},
        json={"target": phone, "message": message, "countryCode": "62"},
    )
    if not response.is_success:
        raise ProviderError(provider, f"Fonnte API error: {response.status_code}")
    return _body(response)


def send_waha(client: httpx.Client, provider: Provider, phone: str, message: str) -> Any:
    headers = {"X-Api-Key": provider.api_key}

    sessions = client.get(f"{provider.api_url}/api/sessions", headers=headers)
    if sessions.is_success:
        body = _body(sessions)
        default = None
        if isinstance(body, list):
            default = next((s for s in body if s.get("name") == "default"), None)
        status = default.get("status") if default else "NOT_FOUND"
        if status != "WORKING":
            raise ProviderError(
                provider, f"WAHA session not ready. Status: {status}. Please scan QR code."
            )

    response = client.post(
        f"{provider.api_url}/api/sendText",
        headers=headers,
        json={"session": "default", "chatId": f"{phone}@c.us", "text": message},
    )
    if not response.is_success:
        raise ProviderError(
            provider, f"WAHA API error: {response.status_code} - {_error_detail(response)}"
        )
    return _body(response)


def send_mpwa(client: httpx.Client, provider: Provider, phone: str, message: str) -> Any:
    response = client.get(
        f"{provider.api_url}/send-message",
        params={
            "api_key": provider.api_key,
            "sender": provider.sender_number or "",
            "number": phone,
            "message": message,
        },
    )
    if not response.is_success:
        raise ProviderError(
            provider, f"MPWA API error: {response.status_code} - {response.text[:200]}"
        )
    return _body(response)


def send_wablas(client: httpx.Client, provider: Provider, phone: str, message: str) -> Any:
    response = client.post(
        f"{provider.api_url}/api/send-message",
        headers={"Authorization": provider.api_key},
        json={"phone": phone, "message": message},
    )
    if not response.is_success:
        raise ProviderError(provider, f"Wablas API error: {response.status_code}")
    return _body(response)


def send_gowa(client: httpx.Client, provider: Provider, phone: str, message: str) -> Any:
    bare_phone = re.sub(r"[^0-9]", "", re.sub(r"@s\.whatsapp\.net$", "", phone))

    auth = None
    if provider.api_key and ":" in provider.api_key:
        username, password = provider.api_key.split(":", 1)
        auth = httpx.BasicAuth(username, password)

    response = client.post(
        f"{provider.api_url}/send/message",
        json={"phone": bare_phone, "message": message},
        auth=auth,
    )
    if not response.is_success:
        raise ProviderError(
            provider, f"GOWA API error: {response.status_code} - {_error_detail(response)}"
        )

    body = _body(response)
    if not isinstance(body, dict) or body.get("code") != "SUCCESS":
        detail = body.get("message") if isinstance(body, dict) else None
        raise ProviderError(provider, f"GOWA error: {detail or 'Failed to send message'}")
    return body


SENDERS: dict[ProviderType, Callable[[httpx.Client, Provider, str, str], Any]] = {
    ProviderType.FONNTE: send_fonnte,
    ProviderType.WAHA: send_waha,
    ProviderType.MPWA: send_mpwa,
    ProviderType.WABLAS: send_wablas,
    ProviderType.GOWA: send_gowa,
}


def send_via_provider(client: httpx.Client, provider: Provider, phone: str, message: str) -> Any:
    """Send through the gateway matching `provider.type`."""
    sender = SENDERS[provider.type]
    logger.debug(f"[WhatsApp] Sending via {provider.name} ({provider.type.value})")
    return sender(client, provider, phone, message)
