"""Database store layer for email jobs."""

import json
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, Optional

import asyncpg

from email_jobs.errors import JobNotFoundError, InvalidPayloadError
from email_jobs.models import Job, JobStats, JobStatus

DEFAULT_MAX_ATTEMPTS = 3

HUNG_ON_LAST_ATTEMPT_ERROR = "Processing did not finish on the final attempt"


def _affected_rows(result: str) -> int:
    """Extract the row count from a command tag like "UPDATE 5"."""
    try:
        return int(result.split()[-1]) if result else 0
    except ValueError:
        return 0


class JobStore:
    """Database layer for email job operations."""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def enqueue(
        self,
        type: str,
        payload: Any,
        scheduled_for: Optional[datetime] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> int:
        """
        Insert a new pending job and return its ID.

        Dict/list payloads are serialized as JSON; strings are stored as given.
        A missing scheduled_for means the job is eligible immediately.
        """
        if not type:
            raise ValueError("Job type is required")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        data = payload if isinstance(payload, str) else json.dumps(payload, default=str)

        async with self.db_pool.acquire() as conn:
            job_id = await conn.fetchval(
                """
                INSERT INTO email_jobs (type, payload, status, scheduled_for, max_attempts)
                VALUES ($1, $2, $3, COALESCE($4::timestamptz, now()), $5)
                RETURNING id
                """,
                type,
                data,
                JobStatus.pending.value,
                scheduled_for,
                max_attempts,
            )

        return job_id

    async def get_job(self, job_id: int) -> Job:
        """Get a job by ID."""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM email_jobs WHERE id = $1", job_id)

        if not row:
            raise JobNotFoundError(job_id)

        return self._row_to_job(row)

    async def list_jobs(
        self,
        type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> list[Job]:
        """List jobs with optional filters, most recent first."""
        query = "SELECT * FROM email_jobs WHERE 1=1"
        params = []
        param_idx = 1

        if type:
            query += f" AND type = ${param_idx}"
            params.append(type)
            param_idx += 1

        if status:
            query += f" AND status = ${param_idx}"
            params.append(status)
            param_idx += 1

        query += f" ORDER BY created_at DESC, id DESC LIMIT ${param_idx}"
        params.append(limit)

        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(query, *params)

        return [self._row_to_job(row) for row in rows]

    async def claim_next(self) -> Optional[Job]:
        """
        Atomically claim the next eligible job.

        Picks the oldest pending job by (scheduled_for, created_at) whose
        scheduled time has passed and which still has attempts left, moves it
        to processing and increments attempts. FOR UPDATE SKIP LOCKED inside a
        single transaction guarantees that concurrent callers never claim the
        same job.
        """
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    UPDATE email_jobs
                    SET status = $1, attempts = attempts + 1, updated_at = now()
                    WHERE id = (
                        SELECT id FROM email_jobs
                        WHERE status = $2
                          AND attempts < max_attempts
                          AND scheduled_for <= now()
                        ORDER BY scheduled_for ASC, created_at ASC, id ASC
                        LIMIT 1
                        FOR UPDATE SKIP LOCKED
                    )
                    RETURNING *
                    """,
                    JobStatus.processing.value,
                    JobStatus.pending.value,
                )

        return self._row_to_job(row) if row else None

    async def mark_completed(self, job_id: int) -> None:
        """Mark a job as completed and clear its error."""
        async with self.db_pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE email_jobs
                SET status = $1, error = NULL, updated_at = now()
                WHERE id = $2
                """,
                JobStatus.completed.value,
                job_id,
            )

    async def mark_failed_or_retry(
        self,
        job_id: int,
        error_message: str,
        attempts: int,
        max_attempts: int,
        retry_at: Optional[datetime] = None,
    ) -> JobStatus:
        """
        Record a failed attempt.

        The job becomes failed once attempts reach max_attempts, otherwise it
        goes back to pending. When retry_at is given for a pending job, its
        scheduled_for moves there. Returns the resulting status.
        """
        if attempts >= max_attempts:
            status = JobStatus.failed
            retry_at = None
        else:
            status = JobStatus.pending

        async with self.db_pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE email_jobs
                SET status = $1,
                    error = $2,
                    scheduled_for = COALESCE($3::timestamptz, scheduled_for),
                    updated_at = now()
                WHERE id = $4
                """,
                status.value,
                error_message,
                retry_at,
                job_id,
            )

        return status

    async def mark_failed(self, job_id: int, error_message: str) -> None:
        """Mark a job as permanently failed regardless of remaining attempts."""
        async with self.db_pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE email_jobs
                SET status = $1, error = $2, updated_at = now()
                WHERE id = $3
                """,
                JobStatus.failed.value,
                error_message,
                job_id,
            )

    async def delete_pending_jobs(
        self, type: str, predicate: Callable[[Any], bool]
    ) -> int:
        """
        Delete pending jobs of a type whose decoded payload matches predicate.

        Jobs in any other status are left alone, and so are pending rows that
        are locked by an in-flight claim. Payloads that cannot be decoded never
        match. Returns the number of deleted jobs.
        """
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                rows = await conn.fetch(
                    """
                    SELECT * FROM email_jobs
                    WHERE type = $1 AND status = $2
                    FOR UPDATE SKIP LOCKED
                    """,
                    type,
                    JobStatus.pending.value,
                )

                job_ids = []
                for row in rows:
                    job = self._row_to_job(row)
                    try:
                        payload = job.decode_payload()
                    except InvalidPayloadError:
                        continue
                    if predicate(payload):
                        job_ids.append(job.id)

                if not job_ids:
                    return 0

                result = await conn.execute(
                    "DELETE FROM email_jobs WHERE id = ANY($1::bigint[])",
                    job_ids,
                )

        return _affected_rows(result)

    async def delete_pending_jobs_by_field(
        self, type: str, path: Sequence[str], value: Any
    ) -> int:
        """
        Delete pending jobs of a type whose payload has value at path.

        Same semantics as delete_pending_jobs, evaluated in SQL so only the
        matching rows are touched. path is a list of keys into the JSON
        payload, e.g. ["document", "id"]. Values compare in their JSON text
        form, so 5 and "5" both match a stored 5.
        """
        text_value = value if isinstance(value, str) else json.dumps(value)

        async with self.db_pool.acquire() as conn:
            result = await conn.execute(
                """
                DELETE FROM email_jobs
                WHERE id IN (
                    SELECT id FROM email_jobs
                    WHERE type = $1
                      AND status = $2
                      AND email_jobs_payload_jsonb(payload) #>> $3::text[] = $4
                    FOR UPDATE SKIP LOCKED
                )
                """,
                type,
                JobStatus.pending.value,
                list(path),
                text_value,
            )

        return _affected_rows(result)

    async def reset_hung_jobs(self, timeout_minutes: int) -> int:
        """
        Revert jobs stuck in processing back to pending.

        A job is hung when its updated_at is older than timeout_minutes.
        Attempts are left unchanged. A job that hung on its last attempt could
        never be claimed again, so it is marked failed instead, where
        retry_failed can pick it up. Returns the number of reset jobs.
        """
        async with self.db_pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE email_jobs
                SET status = CASE WHEN attempts >= max_attempts THEN $4 ELSE $1 END,
                    error = CASE WHEN attempts >= max_attempts THEN $5 ELSE error END,
                    updated_at = now()
                WHERE status = $2
                  AND updated_at < now() - ($3::int * interval '1 minute')
                """,
                JobStatus.pending.value,
                JobStatus.processing.value,
                timeout_minutes,
                JobStatus.failed.value,
                HUNG_ON_LAST_ATTEMPT_ERROR,
            )

        return _affected_rows(result)

    async def retry_failed(self, limit: int = 10) -> int:
        """
        Reset up to limit failed jobs to pending with a fresh attempt budget.

        Returns the number of jobs reset.
        """
        async with self.db_pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE email_jobs
                SET status = $1, attempts = 0, error = NULL, updated_at = now()
                WHERE id IN (
                    SELECT id FROM email_jobs
                    WHERE status = $2
                    ORDER BY updated_at ASC, id ASC
                    LIMIT $3
                    FOR UPDATE SKIP LOCKED
                )
                """,
                JobStatus.pending.value,
                JobStatus.failed.value,
                limit,
            )

        return _affected_rows(result)

    async def stats(self) -> JobStats:
        """Count jobs by status."""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT status, COUNT(*) AS count FROM email_jobs GROUP BY status"
            )

        return JobStats.from_counts({row["status"]: row["count"] for row in rows})

    def _row_to_job(self, row: asyncpg.Record) -> Job:
        """Convert a database row to a Job model."""
        return Job(
            id=row["id"],
            type=row["type"],
            payload=row["payload"],
            status=JobStatus(row["status"]),
            scheduled_for=row["scheduled_for"],
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            error=row["error"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
