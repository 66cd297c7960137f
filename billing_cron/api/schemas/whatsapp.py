"""
WhatsApp API schemas.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class WhatsAppSendRequest(BaseModel):
    phone: str = Field(..., min_length=1, description="Destination phone number")
    message: str = Field(..., min_length=1, description="Message text")


class DispatchAttemptResponse(BaseModel):
    provider_id: str
    provider: str
    type: str
    success: bool
    error: Optional[str] = None
    response: Optional[Any] = None


class WhatsAppSendResponse(BaseModel):
    success: bool
    provider: Optional[str] = Field(default=None, description="Provider that delivered")
    attempts: List[DispatchAttemptResponse] = Field(default_factory=list)
    error: Optional[str] = None


class ProviderCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    type: str = Field(..., description="fonnte / waha / mpwa / wablas / gowa")
    api_url: str = Field(..., min_length=1)
    api_key: str = ""
    priority: int = Field(default=0, ge=0)
    is_active: bool = True
    sender_number: Optional[str] = None
    timeout_seconds: float = Field(default=15.0, gt=0, le=120)


class ProviderUpdateRequest(BaseModel):
    name: Optional[str] = None
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    priority: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    sender_number: Optional[str] = None
    timeout_seconds: Optional[float] = Field(default=None, gt=0, le=120)


class ProviderResponse(BaseModel):
    id: str
    name: str
    type: str
    api_url: str
    priority: int
    is_active: bool
    sender_number: Optional[str] = None
    timeout_seconds: float


class ProviderListResponse(BaseModel):
    providers: List[ProviderResponse] = Field(default_factory=list)
    total: int


class ProviderTestRequest(BaseModel):
    phone: str = Field(..., min_length=1)
    message: Optional[str] = None
