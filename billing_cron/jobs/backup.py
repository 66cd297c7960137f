"""
Billing database backups.

Backups are consistent online copies made with the SQLite backup API and
named billing_backup_YYYYMMDD_HHMMSS.db, so name order is creation order.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from billing_cron.scheduler.entities import utcnow


logger = logging.getLogger(__name__)

BACKUP_PREFIX = "billing_backup_"
BACKUP_SUFFIX = ".db"


@dataclass(frozen=True)
class BackupFile:
    path: Path
    size_bytes: int

    @property
    def filename(self) -> str:
        return self.path.name


class BackupService:
    def __init__(self, db_path: "str | Path", backup_dir: "str | Path"):
        self.db_path = str(db_path)
        self.backup_dir = Path(backup_dir)

    def create_backup(self, now: Optional[datetime] = None) -> BackupFile:
        """
        Copy the database into backup_dir.

        Returns:
            The created backup file
        """
        now = now or utcnow()
        self.backup_dir.mkdir(parents=True, exist_ok=True)

        path = self.backup_dir / f"{BACKUP_PREFIX}{now.strftime('%Y%m%d_%H%M%S')}{BACKUP_SUFFIX}"
        suffix = 1
        while path.exists():
            path = self.backup_dir / (
                f"{BACKUP_PREFIX}{now.strftime('%Y%m%d_%H%M%S')}_{suffix}{BACKUP_SUFFIX}"
            )
            suffix += 1

        source = sqlite3.connect(self.db_path)
        try:
            target = sqlite3.connect(str(path))
            try:
                source.backup(target)
            finally:
                target.close()
        finally:
            source.close()

        backup = BackupFile(path=path, size_bytes=path.stat().st_size)
        logger.info(f"[Backup] Created {backup.filename} ({backup.size_bytes} bytes)")
        return backup

    def list_backups(self) -> list[BackupFile]:
        """Existing backups, newest first."""
        if not self.backup_dir.exists():
            return []
        files = sorted(
            self.backup_dir.glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}"),
            key=lambda p: p.name,
            reverse=True,
        )
        return [BackupFile(path=p, size_bytes=p.stat().st_size) for p in files]

    def prune(self, keep_last_n: int) -> int:
        """Delete all but the newest `keep_last_n` backups; returns how many were deleted."""
        deleted = 0
        for backup in self.list_backups()[keep_last_n:]:
            try:
                backup.path.unlink()
                deleted += 1
                logger.info(f"[Backup] Deleted old backup: {backup.filename}")
            except OSError as e:
                logger.warning(f"[Backup] Failed to delete {backup.filename}: {e}")
        return deleted
