"""
API Dependencies package.

Cross-cutting concerns: authentication and service access.
"""

from .auth import verify_api_key
from .service import get_cron_service

__all__ = ["verify_api_key", "get_cron_service"]
