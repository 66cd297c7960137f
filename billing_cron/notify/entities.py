"""
Notification entities.

- Provider: a configured outbound WhatsApp channel with a trial priority
- DispatchAttempt: one provider tried during a send
- DispatchResult: outcome of a send across all attempts
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from billing_cron.scheduler.entities import generate_uuid


class ProviderType(str, Enum):
    """Supported WhatsApp gateway APIs."""

    FONNTE = "fonnte"
    WAHA = "waha"
    MPWA = "mpwa"
    WABLAS = "wablas"
    GOWA = "gowa"


DEFAULT_PROVIDER_TIMEOUT = 15.0


@dataclass(frozen=True)
class Provider:
    """
    Outbound messaging provider.

    Lower priority is tried first. Read-only to the dispatcher; changed only
    through ProviderRegistry.
    """

    id: str
    name: str
    type: ProviderType
    api_url: str
    api_key: str = ""
    priority: int = 0
    is_active: bool = True
    sender_number: Optional[str] = None
    timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT

    @classmethod
    def create(
        cls,
        name: str,
        type: "str | ProviderType",
        api_url: str,
        api_key: str = "",
        priority: int = 0,
        is_active: bool = True,
        sender_number: Optional[str] = None,
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT,
    ) -> "Provider":
        """Create a new Provider with generated ID."""
        return cls(
            id=generate_uuid(),
            name=name,
            type=ProviderType(type),
            api_url=api_url.rstrip("/"),
            api_key=api_key,
            priority=priority,
            is_active=is_active,
            sender_number=sender_number,
            timeout_seconds=timeout_seconds,
        )

    def to_dict(self, include_secret: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "api_url": self.api_url,
            "priority": self.priority,
            "is_active": self.is_active,
            "sender_number": self.sender_number,
            "timeout_seconds": self.timeout_seconds,
        }
        if include_secret:
            data["api_key"] = self.api_key
        return data


@dataclass(frozen=True)
class DispatchAttempt:
    """One provider tried during a single send."""

    provider_id: str
    provider_name: str
    provider_type: ProviderType
    success: bool
    error: Optional[str] = None
    response_meta: Optional[Any] = None

    def to_dict(self) -> dict:
        return {
            "provider_id": self.provider_id,
            "provider": self.provider_name,
            "type": self.provider_type.value,
            "success": self.success,
            "error": self.error,
            "response": self.response_meta,
        }


@dataclass(frozen=True)
class DispatchResult:
    """
    Outcome of a send.

    success is True iff one attempt succeeded; chosen_provider is that
    attempt's provider. Attempts are in trial order.
    """

    success: bool
    chosen_provider: Optional[Provider] = None
    attempts: list[DispatchAttempt] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "provider": self.chosen_provider.name if self.chosen_provider else None,
            "attempts": [a.to_dict() for a in self.attempts],
            "error": self.error,
        }
