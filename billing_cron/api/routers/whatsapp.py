"""
WhatsApp router.

- POST /whatsapp/send - Send through the active providers with failover
- GET /whatsapp/providers - List configured providers
- POST /whatsapp/providers - Add a provider
- PATCH /whatsapp/providers/{provider_id} - Update a provider
- DELETE /whatsapp/providers/{provider_id} - Remove a provider
- POST /whatsapp/providers/{provider_id}/test - Send a test message through one provider
"""

import asyncio
import functools

from fastapi import APIRouter, Depends, HTTPException

from billing_cron.container import CronService
from billing_cron.notify.dispatcher import TEST_MESSAGE
from billing_cron.notify.entities import Provider, ProviderType
from billing_cron.scheduler.errors import NotFoundError

from ..dependencies.service import get_cron_service
from ..schemas.whatsapp import (
    DispatchAttemptResponse,
    ProviderCreateRequest,
    ProviderListResponse,
    ProviderResponse,
    ProviderTestRequest,
    ProviderUpdateRequest,
    WhatsAppSendRequest,
    WhatsAppSendResponse,
)


router = APIRouter()


@router.post("/send", response_model=WhatsAppSendResponse)
async def send_message(
    request: WhatsAppSendRequest,
    service: CronService = Depends(get_cron_service),
):
    """Deliver a message; the response lists every provider attempt."""
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        None, functools.partial(service.dispatcher.send, request.phone, request.message)
    )
    return result.to_dict()


@router.get("/providers", response_model=ProviderListResponse)
async def list_providers(service: CronService = Depends(get_cron_service)):
    providers = service.providers.list_all()
    return ProviderListResponse(
        providers=[p.to_dict() for p in providers],
        total=len(providers),
    )


@router.post("/providers", response_model=ProviderResponse, status_code=201)
async def create_provider(
    request: ProviderCreateRequest,
    service: CronService = Depends(get_cron_service),
):
    try:
        provider_type = ProviderType(request.type)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid provider type: {request.type}") from None

    provider = Provider.create(
        name=request.name,
        type=provider_type,
        api_url=request.api_url,
        api_key=request.api_key,
        priority=request.priority,
        is_active=request.is_active,
        sender_number=request.sender_number,
        timeout_seconds=request.timeout_seconds,
    )
    return service.providers.add(provider).to_dict()


@router.patch("/providers/{provider_id}", response_model=ProviderResponse)
async def update_provider(
    provider_id: str,
    request: ProviderUpdateRequest,
    service: CronService = Depends(get_cron_service),
):
    try:
        provider = service.providers.update(provider_id, **request.model_dump(exclude_unset=True))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    return provider.to_dict()


@router.delete("/providers/{provider_id}")
async def delete_provider(
    provider_id: str,
    service: CronService = Depends(get_cron_service),
):
    try:
        service.providers.remove(provider_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    return {"success": True, "provider_id": provider_id}


@router.post("/providers/{provider_id}/test", response_model=DispatchAttemptResponse)
async def test_provider(
    provider_id: str,
    request: ProviderTestRequest,
    service: CronService = Depends(get_cron_service),
):
    """Send a test message through one provider, without failover."""
    loop = asyncio.get_running_loop()
    try:
        attempt = await loop.run_in_executor(
            None,
            functools.partial(
                service.dispatcher.test_provider,
                provider_id,
                request.phone,
                request.message or TEST_MESSAGE,
            ),
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    return attempt.to_dict()
