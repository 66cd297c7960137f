"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .cron import (
    CronTriggerRequest,
    CronTriggerResponse,
    JobRunResponse,
    JobStatusResponse,
    CronStatusResponse,
)
from .scheduler import (
    SchedulerStopRequest,
    SchedulerActionResponse,
    SchedulerStatusResponse,
)
from .whatsapp import (
    WhatsAppSendRequest,
    WhatsAppSendResponse,
    DispatchAttemptResponse,
    ProviderCreateRequest,
    ProviderUpdateRequest,
    ProviderResponse,
    ProviderListResponse,
    ProviderTestRequest,
)

__all__ = [
    "CronTriggerRequest",
    "CronTriggerResponse",
    "JobRunResponse",
    "JobStatusResponse",
    "CronStatusResponse",
    "SchedulerStopRequest",
    "SchedulerActionResponse",
    "SchedulerStatusResponse",
    "WhatsAppSendRequest",
    "WhatsAppSendResponse",
    "DispatchAttemptResponse",
    "ProviderCreateRequest",
    "ProviderUpdateRequest",
    "ProviderResponse",
    "ProviderListResponse",
    "ProviderTestRequest",
]
