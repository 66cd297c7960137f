"""
Billing domain store.

SQLite storage for the records the maintenance jobs read and transition:
vouchers and their profiles, agents and agent sales, subscribers, invoices,
reminder settings, registrations and operator notifications.

Every state transition a job relies on for idempotence is a conditional
UPDATE (`WHERE status = ...`) that reports whether it changed a row, so a
repeated run observes "already done" instead of repeating side effects.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from billing_cron.infra.sqlite import SQLiteDatabase, format_ts
from billing_cron.notify.templates import DEFAULT_INVOICE_REMINDER_TEMPLATE
from billing_cron.scheduler.entities import generate_uuid, parse_iso, utcnow


logger = logging.getLogger(__name__)


# =============================================================================
# Status values
# =============================================================================

VOUCHER_WAITING = "WAITING"
VOUCHER_ACTIVE = "ACTIVE"
VOUCHER_EXPIRED = "EXPIRED"

SUBSCRIBER_ACTIVE = "active"
SUBSCRIBER_ISOLATED = "isolated"
SUBSCRIBER_STOPPED = "stopped"

INVOICE_PENDING = "PENDING"
INVOICE_OVERDUE = "OVERDUE"
INVOICE_PAID = "PAID"
INVOICE_CANCELLED = "CANCELLED"
UNPAID_INVOICE_STATUSES = (INVOICE_PENDING, INVOICE_OVERDUE)

REGISTRATION_PENDING = "PENDING"

VALIDITY_UNITS = ("MINUTES", "HOURS", "DAYS", "MONTHS")


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class Voucher:
    id: str
    code: str
    status: str
    profile_id: str
    profile_name: str
    validity_value: int
    validity_unit: str
    reseller_fee: int
    batch_code: Optional[str] = None
    first_login_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


@dataclass
class Subscriber:
    id: str
    username: str
    name: str
    phone: Optional[str]
    status: str
    price: int
    expired_at: Optional[datetime] = None


@dataclass
class Invoice:
    id: str
    invoice_number: str
    subscriber_id: str
    amount: int
    status: str
    due_date: date
    payment_token: Optional[str] = None
    payment_link: Optional[str] = None
    sent_reminders: list[int] = field(default_factory=list)
    # Filled when listed together with the subscriber
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    username: Optional[str] = None


@dataclass
class ReminderSettings:
    """
    Invoice reminder configuration.

    reminder_days are offsets from the due date: -3 means three days
    before, 0 the due date itself.
    """

    enabled: bool = True
    reminder_days: list[int] = field(default_factory=lambda: [-5, -3, -1, 0])
    reminder_hour: int = 9
    template: str = DEFAULT_INVOICE_REMINDER_TEMPLATE


# =============================================================================
# Billing Store
# =============================================================================

class BillingStore(SQLiteDatabase):
    """SQLite-backed billing records."""

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS voucher_profiles (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    validity_value INTEGER NOT NULL,
                    validity_unit TEXT NOT NULL,
                    selling_price INTEGER NOT NULL DEFAULT 0,
                    reseller_fee INTEGER NOT NULL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS vouchers (
                    id TEXT PRIMARY KEY,
                    code TEXT NOT NULL UNIQUE,
                    profile_id TEXT NOT NULL REFERENCES voucher_profiles(id),
                    batch_code TEXT,
                    status TEXT NOT NULL,
                    first_login_at TEXT,
                    expires_at TEXT,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_vouchers_status ON vouchers(status);

                CREATE TABLE IF NOT EXISTS agents (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    phone TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1
                );

                CREATE TABLE IF NOT EXISTS agent_sales (
                    id TEXT PRIMARY KEY,
                    agent_id TEXT NOT NULL REFERENCES agents(id),
                    voucher_code TEXT NOT NULL UNIQUE,
                    profile_name TEXT NOT NULL,
                    amount INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS subscribers (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    phone TEXT,
                    status TEXT NOT NULL,
                    price INTEGER NOT NULL DEFAULT 0,
                    expired_at TEXT,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_subscribers_status ON subscribers(status);

                CREATE TABLE IF NOT EXISTS invoices (
                    id TEXT PRIMARY KEY,
                    invoice_number TEXT NOT NULL UNIQUE,
                    subscriber_id TEXT NOT NULL REFERENCES subscribers(id),
                    amount INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    due_date TEXT NOT NULL,
                    payment_token TEXT,
                    payment_link TEXT,
                    sent_reminders TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    paid_at TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_invoices_subscriber ON invoices(subscriber_id);
                CREATE INDEX IF NOT EXISTS idx_invoices_due ON invoices(status, due_date);

                CREATE TABLE IF NOT EXISTS reminder_settings (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    enabled INTEGER NOT NULL,
                    reminder_days TEXT NOT NULL,
                    reminder_hour INTEGER NOT NULL,
                    template TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS company (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    name TEXT NOT NULL,
                    phone TEXT
                );

                CREATE TABLE IF NOT EXISTS registrations (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    phone TEXT,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS notifications (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    title TEXT NOT NULL,
                    message TEXT NOT NULL,
                    link TEXT,
                    is_read INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                -- Accounting source: sessions observed by the access server,
                -- and the credentials that grant access.
                CREATE TABLE IF NOT EXISTS accounting_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL,
                    start_time TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_sessions_username ON accounting_sessions(username);

                CREATE TABLE IF NOT EXISTS access_credentials (
                    username TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL
                );
            """)

    # =========================================================================
    # Vouchers
    # =========================================================================

    def add_voucher_profile(
        self,
        name: str,
        validity_value: int,
        validity_unit: str,
        selling_price: int = 0,
        reseller_fee: int = 0,
    ) -> str:
        unit = validity_unit.upper()
        if unit not in VALIDITY_UNITS:
            raise ValueError(f"Unknown validity unit: {validity_unit}")
        profile_id = generate_uuid()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO voucher_profiles
                (id, name, validity_value, validity_unit, selling_price, reseller_fee)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (profile_id, name, validity_value, unit, selling_price, reseller_fee),
            )
        return profile_id

    def add_voucher(
        self,
        code: str,
        profile_id: str,
        batch_code: Optional[str] = None,
        status: str = VOUCHER_WAITING,
    ) -> str:
        voucher_id = generate_uuid()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO vouchers (id, code, profile_id, batch_code, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (voucher_id, code, profile_id, batch_code, status, format_ts(utcnow())),
            )
        return voucher_id

    def _row_to_voucher(self, row: sqlite3.Row) -> Voucher:
        return Voucher(
            id=row["id"],
            code=row["code"],
            status=row["status"],
            profile_id=row["profile_id"],
            profile_name=row["profile_name"],
            validity_value=row["validity_value"],
            validity_unit=row["validity_unit"],
            reseller_fee=row["reseller_fee"],
            batch_code=row["batch_code"],
            first_login_at=parse_iso(row["first_login_at"]),
            expires_at=parse_iso(row["expires_at"]),
        )

    _VOUCHER_SELECT = """
        SELECT v.*, p.name AS profile_name, p.validity_value, p.validity_unit,
               p.reseller_fee
        FROM vouchers v JOIN voucher_profiles p ON p.id = v.profile_id
    """

    def get_voucher(self, code: str) -> Optional[Voucher]:
        with self._connection() as conn:
            row = conn.execute(self._VOUCHER_SELECT + " WHERE v.code = ?", (code,)).fetchone()
        return self._row_to_voucher(row) if row is not None else None

    def list_vouchers(self, status: str) -> list[Voucher]:
        with self._connection() as conn:
            rows = conn.execute(
                self._VOUCHER_SELECT + " WHERE v.status = ? ORDER BY v.created_at",
                (status,),
            ).fetchall()
        return [self._row_to_voucher(row) for row in rows]

    def list_expired_active_vouchers(self, now: datetime) -> list[Voucher]:
        with self._connection() as conn:
            rows = conn.execute(
                self._VOUCHER_SELECT
                + " WHERE v.status = ? AND v.expires_at IS NOT NULL AND v.expires_at < ?",
                (VOUCHER_ACTIVE, format_ts(now)),
            ).fetchall()
        return [self._row_to_voucher(row) for row in rows]

    def activate_voucher(self, code: str, first_login_at: datetime, expires_at: datetime) -> bool:
        """WAITING -> ACTIVE. Returns False when the voucher was not waiting."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE vouchers SET status = ?, first_login_at = ?, expires_at = ?
                WHERE code = ? AND status = ?
                """,
                (VOUCHER_ACTIVE, format_ts(first_login_at), format_ts(expires_at),
                 code, VOUCHER_WAITING),
            )
            return cursor.rowcount == 1

    def expire_voucher(self, code: str) -> bool:
        """ACTIVE -> EXPIRED. Returns False when the voucher was not active."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE vouchers SET status = ? WHERE code = ? AND status = ?",
                (VOUCHER_EXPIRED, code, VOUCHER_ACTIVE),
            )
            return cursor.rowcount == 1

    # =========================================================================
    # Agents
    # =========================================================================

    def add_agent(self, name: str, phone: Optional[str] = None) -> str:
        agent_id = generate_uuid()
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO agents (id, name, phone) VALUES (?, ?, ?)",
                (agent_id, name, phone),
            )
        return agent_id

    def get_agent_by_name(self, name: str) -> Optional[dict]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM agents WHERE name = ? AND is_active = 1", (name,)
            ).fetchone()
        return dict(row) if row is not None else None

    def has_agent_sale(self, voucher_code: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM agent_sales WHERE voucher_code = ?", (voucher_code,)
            ).fetchone()
        return row is not None

    def record_agent_sale(
        self,
        agent_id: str,
        voucher_code: str,
        profile_name: str,
        amount: int,
        created_at: Optional[datetime] = None,
    ) -> bool:
        """Insert a sale. Returns False when the voucher already has one."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO agent_sales
                (id, agent_id, voucher_code, profile_name, amount, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (generate_uuid(), agent_id, voucher_code, profile_name, amount,
                 format_ts(created_at or utcnow())),
            )
            return cursor.rowcount == 1

    def list_agent_sales(self, agent_id: Optional[str] = None) -> list[dict]:
        query = "SELECT * FROM agent_sales"
        params: tuple = ()
        if agent_id is not None:
            query += " WHERE agent_id = ?"
            params = (agent_id,)
        with self._connection() as conn:
            rows = conn.execute(query + " ORDER BY created_at", params).fetchall()
        return [dict(row) for row in rows]

    # =========================================================================
    # Subscribers
    # =========================================================================

    def add_subscriber(
        self,
        username: str,
        name: str,
        expired_at: Optional[datetime],
        phone: Optional[str] = None,
        price: int = 0,
        status: str = SUBSCRIBER_ACTIVE,
    ) -> str:
        subscriber_id = generate_uuid()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO subscribers
                (id, username, name, phone, status, price, expired_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (subscriber_id, username, name, phone, status, price,
                 format_ts(expired_at), format_ts(utcnow())),
            )
        return subscriber_id

    def _row_to_subscriber(self, row: sqlite3.Row) -> Subscriber:
        return Subscriber(
            id=row["id"],
            username=row["username"],
            name=row["name"],
            phone=row["phone"],
            status=row["status"],
            price=row["price"],
            expired_at=parse_iso(row["expired_at"]),
        )

    def get_subscriber(self, subscriber_id: str) -> Optional[Subscriber]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM subscribers WHERE id = ?", (subscriber_id,)
            ).fetchone()
        return self._row_to_subscriber(row) if row is not None else None

    def list_subscribers_expiring_between(self, start: datetime, end: datetime) -> list[Subscriber]:
        """Active subscribers with start <= expired_at <= end."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM subscribers
                WHERE status = ? AND expired_at IS NOT NULL
                  AND expired_at >= ? AND expired_at <= ?
                ORDER BY expired_at
                """,
                (SUBSCRIBER_ACTIVE, format_ts(start), format_ts(end)),
            ).fetchall()
        return [self._row_to_subscriber(row) for row in rows]

    def list_subscribers_expired_before(self, cutoff: datetime) -> list[Subscriber]:
        """Active subscribers with expired_at < cutoff."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM subscribers
                WHERE status = ? AND expired_at IS NOT NULL AND expired_at < ?
                ORDER BY expired_at
                """,
                (SUBSCRIBER_ACTIVE, format_ts(cutoff)),
            ).fetchall()
        return [self._row_to_subscriber(row) for row in rows]

    def isolate_subscriber(self, subscriber_id: str) -> bool:
        """active -> isolated. Returns False when the subscriber was not active."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE subscribers SET status = ? WHERE id = ? AND status = ?",
                (SUBSCRIBER_ISOLATED, subscriber_id, SUBSCRIBER_ACTIVE),
            )
            return cursor.rowcount == 1

    def restore_subscriber(self, subscriber_id: str) -> bool:
        """isolated -> active."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE subscribers SET status = ? WHERE id = ? AND status = ?",
                (SUBSCRIBER_ACTIVE, subscriber_id, SUBSCRIBER_ISOLATED),
            )
            return cursor.rowcount == 1

    def count_subscribers(self, status: Optional[str] = None) -> int:
        query = "SELECT COUNT(*) FROM subscribers"
        params: tuple = ()
        if status is not None:
            query += " WHERE status = ?"
            params = (status,)
        with self._connection() as conn:
            return conn.execute(query, params).fetchone()[0]

    # =========================================================================
    # Invoices
    # =========================================================================

    def _row_to_invoice(self, row: sqlite3.Row) -> Invoice:
        keys = row.keys()
        return Invoice(
            id=row["id"],
            invoice_number=row["invoice_number"],
            subscriber_id=row["subscriber_id"],
            amount=row["amount"],
            status=row["status"],
            due_date=date.fromisoformat(row["due_date"]),
            payment_token=row["payment_token"],
            payment_link=row["payment_link"],
            sent_reminders=json.loads(row["sent_reminders"]),
            customer_name=row["customer_name"] if "customer_name" in keys else None,
            customer_phone=row["customer_phone"] if "customer_phone" in keys else None,
            username=row["username"] if "username" in keys else None,
        )

    def has_unpaid_invoice(self, subscriber_id: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                f"""
                SELECT 1 FROM invoices
                WHERE subscriber_id = ? AND status IN ({', '.join('?' * len(UNPAID_INVOICE_STATUSES))})
                """,
                (subscriber_id, *UNPAID_INVOICE_STATUSES),
            ).fetchone()
        return row is not None

    def has_invoice_for_due_date(self, subscriber_id: str, due_date: date) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM invoices WHERE subscriber_id = ? AND due_date = ?",
                (subscriber_id, due_date.isoformat()),
            ).fetchone()
        return row is not None

    def next_invoice_number(self, now: datetime) -> str:
        """INV-YYYYMM-NNNN, numbered per calendar month."""
        prefix = f"INV-{now.strftime('%Y%m')}-"
        with self._connection() as conn:
            row = conn.execute(
                "SELECT MAX(invoice_number) FROM invoices WHERE invoice_number LIKE ?",
                (prefix + "%",),
            ).fetchone()
        last = row[0]
        sequence = int(last[len(prefix):]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"

    def create_invoice(
        self,
        subscriber_id: str,
        invoice_number: str,
        amount: int,
        due_date: date,
        payment_token: Optional[str] = None,
        payment_link: Optional[str] = None,
        status: str = INVOICE_PENDING,
        created_at: Optional[datetime] = None,
    ) -> Invoice:
        invoice = Invoice(
            id=generate_uuid(),
            invoice_number=invoice_number,
            subscriber_id=subscriber_id,
            amount=amount,
            status=status,
            due_date=due_date,
            payment_token=payment_token,
            payment_link=payment_link,
        )
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO invoices
                (id, invoice_number, subscriber_id, amount, status, due_date,
                 payment_token, payment_link, sent_reminders, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, '[]', ?)
                """,
                (invoice.id, invoice.invoice_number, subscriber_id, amount, status,
                 due_date.isoformat(), payment_token, payment_link,
                 format_ts(created_at or utcnow())),
            )
        return invoice

    def list_invoices(self, subscriber_id: Optional[str] = None) -> list[Invoice]:
        query = "SELECT * FROM invoices"
        params: tuple = ()
        if subscriber_id is not None:
            query += " WHERE subscriber_id = ?"
            params = (subscriber_id,)
        with self._connection() as conn:
            rows = conn.execute(query + " ORDER BY invoice_number", params).fetchall()
        return [self._row_to_invoice(row) for row in rows]

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
        return self._row_to_invoice(row) if row is not None else None

    def list_pending_invoices_due_on(self, due_date: date) -> list[Invoice]:
        """PENDING invoices due on `due_date`, with subscriber contact fields."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT i.*, s.name AS customer_name, s.phone AS customer_phone,
                       s.username AS username
                FROM invoices i JOIN subscribers s ON s.id = i.subscriber_id
                WHERE i.status = ? AND i.due_date = ?
                ORDER BY i.invoice_number
                """,
                (INVOICE_PENDING, due_date.isoformat()),
            ).fetchall()
        return [self._row_to_invoice(row) for row in rows]

    def mark_reminder_sent(self, invoice_id: str, day: int) -> None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT sent_reminders FROM invoices WHERE id = ?", (invoice_id,)
            ).fetchone()
            if row is None:
                return
            sent = json.loads(row["sent_reminders"])
            if day not in sent:
                sent.append(day)
            conn.execute(
                "UPDATE invoices SET sent_reminders = ? WHERE id = ?",
                (json.dumps(sent), invoice_id),
            )

    def list_pending_invoices_due_before(self, today: date) -> list[Invoice]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT i.*, s.name AS customer_name, s.phone AS customer_phone,
                       s.username AS username
                FROM invoices i JOIN subscribers s ON s.id = i.subscriber_id
                WHERE i.status = ? AND i.due_date < ?
                ORDER BY i.due_date, i.invoice_number
                """,
                (INVOICE_PENDING, today.isoformat()),
            ).fetchall()
        return [self._row_to_invoice(row) for row in rows]

    def mark_invoice_overdue(self, invoice_id: str) -> bool:
        """PENDING -> OVERDUE."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE invoices SET status = ? WHERE id = ? AND status = ?",
                (INVOICE_OVERDUE, invoice_id, INVOICE_PENDING),
            )
            return cursor.rowcount == 1

    def count_invoices(self, status: str) -> int:
        with self._connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM invoices WHERE status = ?", (status,)
            ).fetchone()[0]

    # =========================================================================
    # Settings
    # =========================================================================

    def get_reminder_settings(self) -> ReminderSettings:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM reminder_settings WHERE id = 1").fetchone()
        if row is None:
            return ReminderSettings()
        return ReminderSettings(
            enabled=bool(row["enabled"]),
            reminder_days=json.loads(row["reminder_days"]),
            reminder_hour=row["reminder_hour"],
            template=row["template"],
        )

    def save_reminder_settings(self, settings: ReminderSettings) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO reminder_settings (id, enabled, reminder_days, reminder_hour, template)
                VALUES (1, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    enabled = excluded.enabled,
                    reminder_days = excluded.reminder_days,
                    reminder_hour = excluded.reminder_hour,
                    template = excluded.template
                """,
                (1 if settings.enabled else 0, json.dumps(settings.reminder_days),
                 settings.reminder_hour, settings.template),
            )

    def get_company(self) -> dict:
        with self._connection() as conn:
            row = conn.execute("SELECT name, phone FROM company WHERE id = 1").fetchone()
        if row is None:
            return {"name": "", "phone": ""}
        return {"name": row["name"], "phone": row["phone"] or ""}

    def save_company(self, name: str, phone: Optional[str] = None) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO company (id, name, phone) VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name, phone = excluded.phone
                """,
                (name, phone),
            )

    # =========================================================================
    # Registrations and notifications
    # =========================================================================

    def add_registration(self, name: str, phone: Optional[str] = None,
                         status: str = REGISTRATION_PENDING) -> str:
        registration_id = generate_uuid()
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO registrations (id, name, phone, status, created_at) VALUES (?, ?, ?, ?, ?)",
                (registration_id, name, phone, status, format_ts(utcnow())),
            )
        return registration_id

    def list_pending_registrations(self) -> list[dict]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM registrations WHERE status = ? ORDER BY created_at",
                (REGISTRATION_PENDING,),
            ).fetchall()
        return [dict(row) for row in rows]

    def add_notification(
        self,
        type: str,
        title: str,
        message: str,
        link: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> str:
        notification_id = generate_uuid()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO notifications (id, type, title, message, link, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (notification_id, type, title, message, link,
                 format_ts(created_at or utcnow())),
            )
        return notification_id

    def has_notification(self, type: str, link: str, since: Optional[datetime] = None) -> bool:
        query = "SELECT 1 FROM notifications WHERE type = ? AND link = ?"
        params: tuple = (type, link)
        if since is not None:
            query += " AND created_at >= ?"
            params += (format_ts(since),)
        with self._connection() as conn:
            return conn.execute(query, params).fetchone() is not None

    def list_notifications(self, limit: int = 50) -> list[dict]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM notifications ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [dict(row) for row in rows]

    # =========================================================================
    # Accounting source
    # =========================================================================

    def add_accounting_session(self, username: str, start_time: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO accounting_sessions (username, start_time) VALUES (?, ?)",
                (username, format_ts(start_time)),
            )

    def first_session_start(self, username: str) -> Optional[datetime]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT MIN(start_time) FROM accounting_sessions WHERE username = ?",
                (username,),
            ).fetchone()
        return parse_iso(row[0]) if row[0] else None

    def grant_access(self, username: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO access_credentials (username, created_at) VALUES (?, ?)",
                (username, format_ts(utcnow())),
            )

    def revoke_access(self, username: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM access_credentials WHERE username = ?", (username,)
            )
            return cursor.rowcount > 0

    def has_access(self, username: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM access_credentials WHERE username = ?", (username,)
            ).fetchone()
        return row is not None

    # =========================================================================
    # Reporting
    # =========================================================================

    def stats(self) -> dict:
        """Record counts for the health report."""
        return {
            "subscribers_active": self.count_subscribers(SUBSCRIBER_ACTIVE),
            "subscribers_isolated": self.count_subscribers(SUBSCRIBER_ISOLATED),
            "vouchers_active": len(self.list_vouchers(VOUCHER_ACTIVE)),
            "invoices_pending": self.count_invoices(INVOICE_PENDING),
            "invoices_overdue": self.count_invoices(INVOICE_OVERDUE),
        }
