"""
API Routers package.
"""

from . import cron, scheduler, whatsapp

__all__ = ["cron", "scheduler", "whatsapp"]
