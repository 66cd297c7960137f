"""
Telegram Bot API client.

Used by the backup and health jobs. Messages go to one chat, optionally to
a forum topic (message_thread_id).
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import httpx

from billing_cron.notify.providers import USER_AGENT
from billing_cron.scheduler.errors import ExternalServiceError


logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_TIMEOUT_SECONDS = 60.0

# Overdue invoices above this count turn the health report into a warning.
OVERDUE_WARNING_THRESHOLD = 50


class TelegramClient:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_base: str = TELEGRAM_API_BASE,
        timeout: float = TELEGRAM_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.bot_token}/{method}"

    def _post(self, method: str, **kwargs: Any) -> dict:
        try:
            with httpx.Client(
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            ) as client:
                response = client.post(self._url(method), **kwargs)
        except httpx.TimeoutException:
            raise ExternalServiceError("telegram", f"Timeout after {self.timeout}s") from None
        except httpx.RequestError as e:
            raise ExternalServiceError("telegram", f"Request error: {str(e)}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.is_success or not body.get("ok"):
            description = body.get("description") or f"HTTP {response.status_code}"
            raise ExternalServiceError("telegram", description)
        return body

    def send_message(self, text: str, topic_id: Optional[int] = None) -> dict:
        """
        Send an HTML message.

        Raises:
            ExternalServiceError: If Telegram is unreachable or rejects the call
        """
        payload: dict[str, Any] = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
        }
        if topic_id is not None:
            payload["message_thread_id"] = topic_id
        body = self._post("sendMessage", json=payload)
        logger.info("[Telegram] Message sent")
        return body

    def send_document(
        self,
        path: "str | Path",
        caption: Optional[str] = None,
        topic_id: Optional[int] = None,
    ) -> dict:
        """Upload a file as a document."""
        path = Path(path)
        data: dict[str, Any] = {"chat_id": self.chat_id}
        if caption:
            data["caption"] = caption
            data["parse_mode"] = "HTML"
        if topic_id is not None:
            data["message_thread_id"] = str(topic_id)

        with path.open("rb") as f:
            body = self._post(
                "sendDocument",
                data=data,
                files={"document": (path.name, f, "application/octet-stream")},
            )
        logger.info(f"[Telegram] Document sent: {path.name}")
        return body


def backup_caption(filename: str, size_bytes: int, created_at: datetime) -> str:
    size_mb = size_bytes / 1024 / 1024
    return (
        "💾 <b>Database Backup</b>\n\n"
        f"📁 {filename}\n"
        f"📦 Size: {size_mb:.2f} MB\n"
        f"📅 {created_at.strftime('%Y-%m-%d %H:%M:%S %Z')}\n\n"
        "✅ Backup completed successfully!"
    )


def health_status(stats: dict, job_health: dict[str, str]) -> tuple[str, list[str]]:
    """
    Overall status for the health report.

    Returns:
        (status, issues) where status is healthy, warning or critical
    """
    status = "healthy"
    issues: list[str] = []

    overdue = stats.get("invoices_overdue", 0)
    if overdue > OVERDUE_WARNING_THRESHOLD:
        status = "warning"
        issues.append(f"{overdue} overdue invoices")

    unhealthy = sorted(t for t, h in job_health.items() if h == "unhealthy")
    degraded = sorted(t for t, h in job_health.items() if h == "degraded")
    if unhealthy:
        status = "critical"
        issues.append(f"Failing jobs: {', '.join(unhealthy)}")
    if degraded:
        if status == "healthy":
            status = "warning"
        issues.append(f"Degraded jobs: {', '.join(degraded)}")

    return status, issues


def health_report(status: str, issues: list[str], stats: dict, created_at: datetime) -> str:
    icon = {"healthy": "✅", "warning": "⚠️", "critical": "🔴"}.get(status, "❓")
    lines = [
        f"{icon} <b>System Health: {status.upper()}</b>",
        "",
        f"👥 Active subscribers: {stats.get('subscribers_active', 0)}",
        f"⛔ Isolated subscribers: {stats.get('subscribers_isolated', 0)}",
        f"🎫 Active vouchers: {stats.get('vouchers_active', 0)}",
        f"🧾 Pending invoices: {stats.get('invoices_pending', 0)}",
        f"⏰ Overdue invoices: {stats.get('invoices_overdue', 0)}",
    ]
    if issues:
        lines += ["", "<b>Issues:</b>"] + [f"• {issue}" for issue in issues]
    lines += ["", f"📅 {created_at.strftime('%Y-%m-%d %H:%M:%S %Z')}"]
    return "\n".join(lines)
