"""
Notification delivery.

- entities: Provider, DispatchAttempt, DispatchResult
- providers: per-gateway HTTP senders
- registry: provider configuration and message log (SQLite)
- dispatcher: priority-ordered failover sends
- templates: {{placeholder}} rendering
"""

from .entities import (
    ProviderType,
    Provider,
    DispatchAttempt,
    DispatchResult,
)
from .providers import ProviderError, send_via_provider
from .registry import ProviderRegistry, MessageLog
from .dispatcher import NotificationDispatcher, normalize_phone
from .templates import DEFAULT_INVOICE_REMINDER_TEMPLATE, render_template

__all__ = [
    # Entities
    "ProviderType",
    "Provider",
    "DispatchAttempt",
    "DispatchResult",
    # Providers
    "ProviderError",
    "send_via_provider",
    # Registry
    "ProviderRegistry",
    "MessageLog",
    # Dispatch
    "NotificationDispatcher",
    "normalize_phone",
    "DEFAULT_INVOICE_REMINDER_TEMPLATE",
    "render_template",
]
