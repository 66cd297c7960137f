"""
Provider registry and message log.

ProviderRegistry is the configuration side: providers are added, updated
and removed here, and the dispatcher only reads the active ones.
MessageLog keeps one row per delivery attempt.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Optional

from billing_cron.infra.sqlite import SQLiteDatabase, format_ts
from billing_cron.scheduler.entities import generate_uuid, utcnow
from billing_cron.scheduler.errors import NotFoundError

from .entities import Provider, ProviderType


logger = logging.getLogger(__name__)


class ProviderRegistry(SQLiteDatabase):
    """SQLite-backed WhatsApp provider configuration."""

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS whatsapp_providers (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL,
                    api_url TEXT NOT NULL,
                    api_key TEXT NOT NULL DEFAULT '',
                    priority INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    sender_number TEXT,
                    timeout_seconds REAL NOT NULL DEFAULT 15.0
                )
            """)

    def _row_to_provider(self, row: sqlite3.Row) -> Provider:
        return Provider(
            id=row["id"],
            name=row["name"],
            type=ProviderType(row["type"]),
            api_url=row["api_url"],
            api_key=row["api_key"],
            priority=row["priority"],
            is_active=bool(row["is_active"]),
            sender_number=row["sender_number"],
            timeout_seconds=row["timeout_seconds"],
        )

    def add(self, provider: Provider) -> Provider:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO whatsapp_providers
                (id, name, type, api_url, api_key, priority, is_active,
                 sender_number, timeout_seconds)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    provider.id,
                    provider.name,
                    provider.type.value,
                    provider.api_url,
                    provider.api_key,
                    provider.priority,
                    1 if provider.is_active else 0,
                    provider.sender_number,
                    provider.timeout_seconds,
                ),
            )
        logger.info(f"[WhatsApp] Provider added: {provider.name} ({provider.type.value})")
        return provider

    def get(self, provider_id: str) -> Optional[Provider]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM whatsapp_providers WHERE id = ?", (provider_id,)
            ).fetchone()
        return self._row_to_provider(row) if row is not None else None

    def update(
        self,
        provider_id: str,
        name: Optional[str] = None,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        priority: Optional[int] = None,
        is_active: Optional[bool] = None,
        sender_number: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Provider:
        if self.get(provider_id) is None:
            raise NotFoundError("Provider", provider_id)

        updates = []
        values: list[Any] = []

        if name is not None:
            updates.append("name = ?")
            values.append(name)
        if api_url is not None:
            updates.append("api_url = ?")
            values.append(api_url.rstrip("/"))
        if api_key is not None:
            updates.append("api_key = ?")
            values.append(api_key)
        if priority is not None:
            updates.append("priority = ?")
            values.append(priority)
        if is_active is not None:
            updates.append("is_active = ?")
            values.append(1 if is_active else 0)
        if sender_number is not None:
            updates.append("sender_number = ?")
            values.append(sender_number)
        if timeout_seconds is not None:
            updates.append("timeout_seconds = ?")
            values.append(timeout_seconds)

        if updates:
            values.append(provider_id)
            with self._transaction() as conn:
                conn.execute(
                    f"UPDATE whatsapp_providers SET {', '.join(updates)} WHERE id = ?",
                    values,
                )

        return self.get(provider_id)

    def remove(self, provider_id: str) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM whatsapp_providers WHERE id = ?", (provider_id,)
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Provider", provider_id)

    def list_all(self) -> list[Provider]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM whatsapp_providers ORDER BY priority ASC, rowid ASC"
            ).fetchall()
        return [self._row_to_provider(row) for row in rows]

    def list_active(self) -> list[Provider]:
        """Active providers in trial order (priority ascending)."""
        return [p for p in self.list_all() if p.is_active]


class MessageLog(SQLiteDatabase):
    """Append-only record of delivery attempts."""

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS message_log (
                    id TEXT PRIMARY KEY,
                    phone TEXT NOT NULL,
                    message TEXT NOT NULL,
                    status TEXT NOT NULL,
                    provider_id TEXT,
                    provider_name TEXT,
                    provider_type TEXT,
                    response TEXT,
                    created_at TEXT NOT NULL
                )
            """)

    def record(
        self,
        phone: str,
        message: str,
        status: str,
        provider: Provider,
        response: Any = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO message_log
                (id, phone, message, status, provider_id, provider_name,
                 provider_type, response, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    generate_uuid(),
                    phone,
                    message,
                    status,
                    provider.id,
                    provider.name,
                    provider.type.value,
                    json.dumps(response, default=str),
                    format_ts(created_at or utcnow()),
                ),
            )

    def list_recent(self, limit: int = 50) -> list[dict]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM message_log ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            {**dict(row), "response": json.loads(row["response"]) if row["response"] else None}
            for row in rows
        ]
