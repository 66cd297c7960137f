"""
Notification test fixtures.

Gateways are simulated with httpx.MockTransport; a RecordingGateway routes
requests by host so each provider can be given its own behavior.
"""

from typing import Callable, Optional

import httpx
import pytest

from billing_cron.notify import NotificationDispatcher, Provider


GatewayBehavior = Callable[[httpx.Request], httpx.Response]


def ok_json(body: Optional[dict] = None) -> GatewayBehavior:
    return lambda request: httpx.Response(200, json=body or {"status": True})


def status(code: int, body: Optional[dict] = None) -> GatewayBehavior:
    return lambda request: httpx.Response(code, json=body or {"status": False})


def timeout() -> GatewayBehavior:
    def _raise(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)
    return _raise


def unreachable() -> GatewayBehavior:
    def _raise(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)
    return _raise


class RecordingGateway:
    """MockTransport handler that records requests and answers per host."""

    def __init__(self):
        self.behaviors: dict[str, GatewayBehavior] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        behavior = self.behaviors.get(request.url.host)
        if behavior is None:
            return httpx.Response(404, json={"message": "unknown host"})
        return behavior(request)

    @property
    def hosts(self) -> list[str]:
        return [r.url.host for r in self.requests]

    def client_factory(self, provider: Provider) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self), timeout=provider.timeout_seconds)


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def dispatcher(providers, message_log, gateway) -> NotificationDispatcher:
    return NotificationDispatcher(
        registry=providers,
        message_log=message_log,
        client_factory=gateway.client_factory,
    )


@pytest.fixture
def add_provider(providers) -> Callable[..., Provider]:
    """Register a Fonnte provider at https://<host>/send."""

    def _add(name: str, host: str, priority: int, is_active: bool = True) -> Provider:
        return providers.add(Provider.create(
            name=name,
            type="fonnte",
            api_url=f"https://{host}/send",
            api_key=f"key-{name}",
            priority=priority,
            is_active=is_active,
        ))

    return _add
