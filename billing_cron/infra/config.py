"""
Environment configuration.

Values come from the process environment, with a .env file loaded first
when present. Settings is built once at startup and passed down; nothing
below the entry points reads os.environ directly.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from billing_cron.scheduler.entities import ScheduleDescriptor
from billing_cron.scheduler.errors import ValidationError


# =============================================================================
# Environment helpers
# =============================================================================

def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    val = os.getenv(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    elif val in ("false", "0", "no", "off"):
        return False
    return default


def _get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    val = os.getenv(key)
    if val is None or val.strip() == "":
        return default
    try:
        return int(val)
    except ValueError:
        raise ValidationError(f"Invalid integer for {key}: {val}") from None


def _get_env_float(key: str, default: float) -> float:
    val = os.getenv(key)
    if val is None or val.strip() == "":
        return default
    try:
        return float(val)
    except ValueError:
        raise ValidationError(f"Invalid number for {key}: {val}") from None


def _get_env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(key)
    if val is None or val.strip() == "":
        return default
    return val.strip()


# =============================================================================
# Settings
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """Process-wide configuration."""

    # Storage
    billing_db_path: str = "data/billing.db"
    cron_db_path: str = "data/cron.db"
    history_keep: int = 100

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_poll_seconds: float = 30.0
    schedule_timezone: str = "UTC"

    # Billing rules
    country_code: str = "62"
    isolir_grace_days: int = 0
    invoice_lookahead_days: int = 7
    app_base_url: str = "http://localhost:3000"

    # External services
    network_control_url: Optional[str] = None
    network_control_token: Optional[str] = None
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    telegram_backup_topic_id: Optional[int] = None
    telegram_health_topic_id: Optional[int] = None

    # Backups
    backup_dir: str = "data/backups"
    backup_time: str = "02:00"
    backup_keep_last: int = 7

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # API
    api_auth_enabled: bool = False
    api_key: str = ""

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.schedule_timezone)


def _get_env_topic(key: str) -> Optional[int]:
    val = _get_env_str(key)
    if val is None:
        return None
    try:
        return int(val)
    except ValueError:
        raise ValidationError(f"Invalid Telegram topic id for {key}: {val}") from None


def load_settings(env_file: "str | Path | None" = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional .env path; the default search applies when None

    Raises:
        ValidationError: If a value cannot be parsed or is out of range
    """
    load_dotenv(env_file)

    settings = Settings(
        billing_db_path=_get_env_str("BILLING_DB_PATH", Settings.billing_db_path),
        cron_db_path=_get_env_str("CRON_DB_PATH", Settings.cron_db_path),
        history_keep=_get_env_int("HISTORY_KEEP", Settings.history_keep),
        scheduler_enabled=_get_env_bool("SCHEDULER_ENABLED", Settings.scheduler_enabled),
        scheduler_poll_seconds=_get_env_float("SCHEDULER_POLL_SECONDS", Settings.scheduler_poll_seconds),
        schedule_timezone=_get_env_str("SCHEDULE_TIMEZONE", Settings.schedule_timezone),
        country_code=_get_env_str("COUNTRY_CODE", Settings.country_code),
        isolir_grace_days=_get_env_int("ISOLIR_GRACE_DAYS", Settings.isolir_grace_days),
        invoice_lookahead_days=_get_env_int("INVOICE_LOOKAHEAD_DAYS", Settings.invoice_lookahead_days),
        app_base_url=_get_env_str("APP_BASE_URL", Settings.app_base_url).rstrip("/"),
        network_control_url=_get_env_str("NETWORK_CONTROL_URL"),
        network_control_token=_get_env_str("NETWORK_CONTROL_TOKEN"),
        telegram_bot_token=_get_env_str("TELEGRAM_BOT_TOKEN"),
        telegram_chat_id=_get_env_str("TELEGRAM_CHAT_ID"),
        telegram_backup_topic_id=_get_env_topic("TELEGRAM_BACKUP_TOPIC_ID"),
        telegram_health_topic_id=_get_env_topic("TELEGRAM_HEALTH_TOPIC_ID"),
        backup_dir=_get_env_str("BACKUP_DIR", Settings.backup_dir),
        backup_time=_get_env_str("BACKUP_TIME", Settings.backup_time),
        backup_keep_last=_get_env_int("BACKUP_KEEP_LAST", Settings.backup_keep_last),
        log_level=_get_env_str("LOG_LEVEL", Settings.log_level).upper(),
        log_dir=_get_env_str("LOG_DIR", Settings.log_dir),
        api_auth_enabled=_get_env_bool("API_AUTH_ENABLED", Settings.api_auth_enabled),
        api_key=_get_env_str("API_KEY", Settings.api_key),
    )
    validate_settings(settings)
    return settings


def validate_settings(settings: Settings) -> None:
    """Range checks that cannot be expressed by the parsers alone."""
    if settings.history_keep < 1:
        raise ValidationError("HISTORY_KEEP must be at least 1")
    if settings.scheduler_poll_seconds <= 0:
        raise ValidationError("SCHEDULER_POLL_SECONDS must be positive")
    if settings.isolir_grace_days < 0:
        raise ValidationError("ISOLIR_GRACE_DAYS must not be negative")
    if settings.invoice_lookahead_days < 0:
        raise ValidationError("INVOICE_LOOKAHEAD_DAYS must not be negative")
    if settings.backup_keep_last < 1:
        raise ValidationError("BACKUP_KEEP_LAST must be at least 1")
    if not settings.country_code.isdigit():
        raise ValidationError(f"COUNTRY_CODE must be digits, got {settings.country_code}")
    try:
        ZoneInfo(settings.schedule_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown SCHEDULE_TIMEZONE: {settings.schedule_timezone}") from None
    ScheduleDescriptor.daily(settings.backup_time)
