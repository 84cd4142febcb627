"""
SQLite job store for single-host deployments and local development.
Uses aiosqlite for async SQLite operations.

The connection runs in autocommit mode, so every statement is its own
transaction. A write statement takes SQLite's write lock before it reads,
which makes the claim UPDATE atomic across connections and processes.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import aiosqlite

from testgen.config import config
from testgen.jobs.errors import NotFound, StoreUnavailable
from testgen.jobs.models import Job, JobState, QueueName, new_job_id, utc_now
from testgen.jobs.store import JobStore, empty_counts
from testgen.utils.logging import store_logger as logger


JOB_COLUMNS = (
    "job_id, queue_name, state, payload, result, failure_reason, "
    "created_at, started_at, completed_at"
)


@contextmanager
def _translate_errors():
    try:
        yield
    except sqlite3.OperationalError as e:
        raise StoreUnavailable(f"SQLite job store unavailable: {e}") from e


def _expiry(seconds: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(seconds=seconds)).isoformat()


class SQLiteJobStore(JobStore):
    """Handles generation job queue database operations"""

    def __init__(
        self,
        db_path: str = "generation_jobs.db",
        result_ttl: Optional[int] = None,
        failure_ttl: Optional[int] = None,
        busy_timeout: float = 30.0,
    ):
        self.db_path = db_path
        self.result_ttl = result_ttl or config.RESULT_TTL_SECONDS
        self.failure_ttl = failure_ttl or config.FAILURE_TTL_SECONDS
        self.busy_timeout = busy_timeout
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def backend_name(self) -> str:
        return "sqlite"

    @property
    def needs_retention_sweep(self) -> bool:
        return True

    async def connect(self):
        """Connect to database and create tables if needed"""
        db_dir = Path(self.db_path).parent
        if str(db_dir) != "." and not db_dir.exists():
            db_dir.mkdir(parents=True, exist_ok=True)

        with _translate_errors():
            self._conn = await aiosqlite.connect(
                self.db_path,
                isolation_level=None,
                timeout=self.busy_timeout,
            )
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._create_tables()

        logger.info("SQLite job store connected", path=self.db_path)

    async def _create_tables(self):
        """Create required tables"""
        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS generation_jobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                job_id TEXT NOT NULL,
                queue_name TEXT NOT NULL,
                state TEXT NOT NULL DEFAULT 'waiting',

                -- Input data (JSON)
                payload TEXT NOT NULL,

                -- Output data, set by the terminal write
                result TEXT,
                failure_reason TEXT,

                -- Timestamps (ISO-8601 UTC)
                created_at TEXT NOT NULL,
                started_at TEXT,
                completed_at TEXT,
                expires_at TEXT,

                UNIQUE (queue_name, job_id)
            )
        """)

        await self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_queue_state
            ON generation_jobs(queue_name, state, id)
        """)

        await self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_expires_at
            ON generation_jobs(expires_at)
        """)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreUnavailable("SQLite job store is not connected")
        return self._conn

    # =========================================================================
    # Operations
    # =========================================================================

    async def enqueue(self, queue_name: QueueName, payload: Dict[str, Any]) -> str:
        job = Job(job_id=new_job_id(), queue_name=queue_name, payload=payload)
        record = job.to_record()

        with _translate_errors():
            await self.conn.execute("""
                INSERT INTO generation_jobs
                (job_id, queue_name, state, payload, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                job.job_id,
                queue_name.value,
                JobState.WAITING.value,
                record["payload"],
                job.created_at,
            ))

        return job.job_id

    async def claim_next(self, queue_name: QueueName) -> Optional[Job]:
        with _translate_errors():
            cursor = await self.conn.execute(f"""
                UPDATE generation_jobs
                SET state = 'active', started_at = ?
                WHERE id = (
                    SELECT id FROM generation_jobs
                    WHERE queue_name = ? AND state = 'waiting'
                    ORDER BY id ASC
                    LIMIT 1
                )
                RETURNING {JOB_COLUMNS}
            """, (utc_now(), queue_name.value))
            rows = await cursor.fetchall()
            await cursor.close()

        if not rows:
            return None
        return Job.from_record(dict(rows[0]))

    async def mark_completed(
        self,
        queue_name: QueueName,
        job_id: str,
        result: Dict[str, Any]
    ) -> bool:
        return await self._finish(
            queue_name,
            job_id,
            JobState.COMPLETED,
            result=Job.encode_result(result),
            failure_reason=None,
            ttl=self.result_ttl,
        )

    async def mark_failed(self, queue_name: QueueName, job_id: str, reason: str) -> bool:
        return await self._finish(
            queue_name,
            job_id,
            JobState.FAILED,
            result=None,
            failure_reason=reason,
            ttl=self.failure_ttl,
        )

    async def _finish(
        self,
        queue_name: QueueName,
        job_id: str,
        state: JobState,
        result: Optional[str],
        failure_reason: Optional[str],
        ttl: int,
    ) -> bool:
        with _translate_errors():
            cursor = await self.conn.execute("""
                UPDATE generation_jobs
                SET state = ?,
                    result = ?,
                    failure_reason = ?,
                    completed_at = ?,
                    expires_at = ?
                WHERE queue_name = ? AND job_id = ? AND state = 'active'
            """, (
                state.value,
                result,
                failure_reason,
                utc_now(),
                _expiry(ttl),
                queue_name.value,
                job_id,
            ))
            updated = cursor.rowcount
            await cursor.close()

        if updated == 1:
            return True

        current = await self.get_job(queue_name, job_id)
        if current is None:
            raise NotFound(f"Job {job_id} not found in queue {queue_name.value}")

        logger.warning(
            "Ignoring terminal write for job that is not active",
            job_id=job_id,
            current_state=current.state.value,
            requested_state=state.value,
        )
        return False

    async def get_job(self, queue_name: QueueName, job_id: str) -> Optional[Job]:
        with _translate_errors():
            cursor = await self.conn.execute(f"""
                SELECT {JOB_COLUMNS}
                FROM generation_jobs
                WHERE queue_name = ? AND job_id = ?
                AND (expires_at IS NULL OR expires_at > ?)
            """, (queue_name.value, job_id, utc_now()))
            row = await cursor.fetchone()
            await cursor.close()

        if not row:
            return None
        return Job.from_record(dict(row))

    async def queue_counts(self, queue_name: QueueName) -> Dict[str, int]:
        with _translate_errors():
            cursor = await self.conn.execute("""
                SELECT state, COUNT(*) AS n
                FROM generation_jobs
                WHERE queue_name = ?
                AND (expires_at IS NULL OR expires_at > ?)
                GROUP BY state
            """, (queue_name.value, utc_now()))
            rows = await cursor.fetchall()
            await cursor.close()

        counts = empty_counts()
        for row in rows:
            counts[row["state"]] = row["n"]
        return counts

    async def purge_expired(self) -> int:
        """Remove completed/failed jobs past their retention window"""
        with _translate_errors():
            cursor = await self.conn.execute("""
                DELETE FROM generation_jobs
                WHERE expires_at IS NOT NULL AND expires_at <= ?
            """, (utc_now(),))
            removed = cursor.rowcount
            await cursor.close()

        if removed:
            logger.info("Purged expired jobs", removed=removed)
        return removed

    async def close(self):
        """Close database connection"""
        if self._conn:
            await self._conn.close()
            self._conn = None
