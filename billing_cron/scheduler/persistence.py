"""
History store for job runs.

SQLite with WAL mode and one connection per operation, so job-type threads
can append concurrently. Records are append-only; the single terminal update
of a running record is the only mutation, and pruning removes the oldest
records of a job type beyond the retention bound.
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from billing_cron.infra.sqlite import SQLiteDatabase, format_ts

from .entities import (
    JobRun,
    JobRunStatus,
    JobTrigger,
    JobType,
    ensure_utc,
    parse_iso,
)
from .errors import InvalidOperationError, NotFoundError
from .results import result_from_dict


logger = logging.getLogger(__name__)

# Latest runs kept per job type.
DEFAULT_KEEP = 100


class HistoryStore(SQLiteDatabase):
    """
    SQLite-backed JobRun history.

    Provides:
    - append(run): insert a new RUNNING record, then prune its job type
    - complete(run): the single terminal update of a running record
    - list_runs/latest/last_success: reads ordered by started_at descending
    - prune(job_type, keep): retention per job type
    """

    def __init__(self, db_path: str | Path, keep: int = DEFAULT_KEEP):
        """
        Initialize the history store.

        Args:
            db_path: Path to SQLite database file
            keep: Number of most recent runs kept per job type
        """
        if keep < 1:
            raise ValueError("keep must be at least 1")
        self.keep = keep
        super().__init__(db_path)

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS job_runs (
                    id TEXT PRIMARY KEY,
                    job_type TEXT NOT NULL,
                    status TEXT NOT NULL,
                    triggered_by TEXT NOT NULL DEFAULT 'manual',
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    duration_ms INTEGER,
                    result TEXT,
                    error TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_job_runs_type_started
                ON job_runs (job_type, started_at DESC)
            """)

    # =========================================================================
    # Writes
    # =========================================================================

    def append(self, run: JobRun) -> JobRun:
        """Insert a new run and prune its job type."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO job_runs
                (id, job_type, status, triggered_by, started_at, completed_at,
                 duration_ms, result, error)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run.id,
                    run.job_type.value,
                    run.status.value,
                    run.trigger.value,
                    format_ts(run.started_at),
                    format_ts(run.completed_at),
                    run.duration_ms,
                    json.dumps(run.result.to_dict()) if run.result is not None else None,
                    run.error,
                ),
            )

        self.prune(run.job_type, self.keep)
        return run

    def complete(self, run: JobRun) -> JobRun:
        """
        Persist the terminal state of a running record.

        Raises:
            InvalidOperationError: If `run` is not terminal, or the stored
                record already reached a terminal status
            NotFoundError: If the record does not exist
        """
        if not run.is_terminal():
            raise InvalidOperationError(f"JobRun {run.id} is not terminal")

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE job_runs
                SET status = ?, completed_at = ?, duration_ms = ?, result = ?, error = ?
                WHERE id = ? AND status = ?
                """,
                (
                    run.status.value,
                    format_ts(run.completed_at),
                    run.duration_ms,
                    json.dumps(run.result.to_dict()) if run.result is not None else None,
                    run.error,
                    run.id,
                    JobRunStatus.RUNNING.value,
                ),
            )
            updated = cursor.rowcount

        if updated == 0:
            existing = self.get(run.id)
            if existing is None:
                raise NotFoundError("JobRun", run.id)
            raise InvalidOperationError(
                f"JobRun {run.id} already completed with status {existing.status.value}"
            )

        return run

    def prune(self, job_type: JobType, keep: int) -> int:
        """
        Delete all but the `keep` most recent runs of `job_type`.

        Returns:
            Number of deleted records
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                DELETE FROM job_runs
                WHERE job_type = ? AND id NOT IN (
                    SELECT id FROM job_runs
                    WHERE job_type = ?
                    ORDER BY started_at DESC, rowid DESC
                    LIMIT ?
                )
                """,
                (job_type.value, job_type.value, keep),
            )
            deleted = cursor.rowcount

        if deleted:
            logger.debug(f"Pruned {deleted} old {job_type.value} runs")
        return deleted

    # =========================================================================
    # Reads
    # =========================================================================

    def _row_to_run(self, row: sqlite3.Row) -> JobRun:
        job_type = row["job_type"]
        return JobRun(
            id=row["id"],
            job_type=JobType(job_type),
            status=JobRunStatus(row["status"]),
            trigger=JobTrigger(row["triggered_by"]),
            started_at=parse_iso(row["started_at"]),
            completed_at=parse_iso(row["completed_at"]),
            duration_ms=row["duration_ms"],
            result=result_from_dict(
                job_type, json.loads(row["result"]) if row["result"] else None
            ),
            error=row["error"],
        )

    def get(self, run_id: str) -> Optional[JobRun]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM job_runs WHERE id = ?", (run_id,)
            ).fetchone()

        return self._row_to_run(row) if row is not None else None

    def list_runs(self, job_type: Optional[JobType] = None, limit: int = 50) -> list[JobRun]:
        """List runs ordered by start time (newest first)."""
        with self._connection() as conn:
            if job_type is None:
                rows = conn.execute(
                    "SELECT * FROM job_runs ORDER BY started_at DESC, rowid DESC LIMIT ?",
                    (limit,),
                ).fetchall()
            else:
                rows = conn.execute(
                    """
                    SELECT * FROM job_runs WHERE job_type = ?
                    ORDER BY started_at DESC, rowid DESC LIMIT ?
                    """,
                    (job_type.value, limit),
                ).fetchall()

        return [self._row_to_run(row) for row in rows]

    def latest(self, job_type: JobType) -> Optional[JobRun]:
        runs = self.list_runs(job_type, limit=1)
        return runs[0] if runs else None

    def last_success(self, job_type: JobType) -> Optional[JobRun]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM job_runs WHERE job_type = ? AND status = ?
                ORDER BY started_at DESC, rowid DESC LIMIT 1
                """,
                (job_type.value, JobRunStatus.SUCCESS.value),
            ).fetchone()

        return self._row_to_run(row) if row is not None else None

    def count(self, job_type: JobType) -> int:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM job_runs WHERE job_type = ?",
                (job_type.value,),
            ).fetchone()
        return row[0]

    def list_running(self) -> list[JobRun]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM job_runs WHERE status = ? ORDER BY started_at DESC",
                (JobRunStatus.RUNNING.value,),
            ).fetchall()
        return [self._row_to_run(row) for row in rows]

    def mark_interrupted(self, completed_at: datetime) -> int:
        """
        Close RUNNING records left behind by a previous process.

        A run can only be in flight inside a live process, so at startup
        every RUNNING record belongs to a process that died mid-run.

        Returns:
            Number of records closed
        """
        interrupted = 0
        for run in self.list_running():
            finished = max(ensure_utc(completed_at), run.started_at)
            try:
                self.complete(run.complete(
                    JobRunStatus.ERROR,
                    completed_at=finished,
                    error="Interrupted by process restart",
                ))
            except InvalidOperationError:
                continue
            interrupted += 1

        if interrupted:
            logger.warning(f"Marked {interrupted} interrupted run(s) as error")
        return interrupted
