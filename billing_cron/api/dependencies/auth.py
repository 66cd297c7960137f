"""
Optional X-API-Key guard for the operator routers.

Settings.api_auth_enabled (API_AUTH_ENABLED) switches it on; the expected
key is Settings.api_key (API_KEY). Both are read from the service on every
request, so an app built around a test service uses that service's values.
"""

import secrets
from typing import Optional

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from .service import get_cron_service

api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,
    description="Required when API_AUTH_ENABLED=true",
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def verify_api_key(
    request: Request,
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """
    Returns the accepted key, or None while auth is disabled.

    Raises:
        HTTPException: 401 when auth is enabled and the key is missing or wrong
    """
    settings = get_cron_service(request).settings
    if not settings.api_auth_enabled:
        return None

    if not api_key:
        raise _unauthorized("Missing API key. Provide X-API-Key header.")
    # An empty configured key never matches.
    if not settings.api_key or not secrets.compare_digest(api_key, settings.api_key):
        raise _unauthorized("Invalid API key")
    return api_key
