"""High-level service layer for email job operations."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Optional

import asyncpg

from email_jobs.config import EmailJobsConfig
from email_jobs.handlers.emails import EmailJobType
from email_jobs.models import Job, JobStats
from email_jobs.store import JobStore


class EmailJobService:
    """Producer and administrative API for email jobs."""

    def __init__(
        self,
        config: EmailJobsConfig,
        db_pool: asyncpg.Pool,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.store = JobStore(db_pool)
        self.logger = logger or logging.getLogger(__name__)

    async def enqueue(
        self,
        type: str,
        payload: Any,
        scheduled_for: Optional[datetime] = None,
        max_attempts: Optional[int] = None,
    ) -> int:
        """
        Enqueue a new email job.

        Args:
            type: Job type (e.g., "query-confirmation")
            payload: Data the executor needs, serialized as JSON
            scheduled_for: When the job becomes eligible (defaults to now)
            max_attempts: Maximum processing attempts (defaults to config)

        Returns:
            int: The created job ID

        Raises:
            ValueError: If type or max_attempts are invalid
            asyncpg.PostgresError: If the insert fails; the caller decides
                whether the triggering request still succeeds
        """
        if max_attempts is None:
            max_attempts = self.config.default_max_attempts

        try:
            job_id = await self.store.enqueue(
                type=type,
                payload=payload,
                scheduled_for=scheduled_for,
                max_attempts=max_attempts,
            )
        except Exception:
            self.logger.error(f"Failed to create email job of type {type}", exc_info=True)
            raise

        when = scheduled_for.isoformat() if scheduled_for else "now"
        self.logger.info(f"Created email job {job_id} of type {type} scheduled for {when}")
        return job_id

    async def get_job(self, job_id: int) -> Job:
        """Get a job by ID."""
        return await self.store.get_job(job_id)

    async def list_jobs(
        self,
        *,
        type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> list[Job]:
        """List jobs with optional filters."""
        return await self.store.list_jobs(type=type, status=status, limit=limit)

    async def delete_pending_jobs(
        self, type: str, predicate: Callable[[Any], bool]
    ) -> int:
        """Cancel not-yet-run jobs of a type whose payload matches predicate."""
        count = await self.store.delete_pending_jobs(type, predicate)
        if count > 0:
            self.logger.info(f"Deleted {count} pending {type} jobs")
        return count

    async def delete_document_expiry_jobs(self, document_id: int) -> int:
        """Cancel pending expiry notifications for a machine document."""
        count = await self.store.delete_pending_jobs_by_field(
            EmailJobType.document_expiry.value, ["document", "id"], document_id
        )
        if count > 0:
            self.logger.info(
                f"Deleted {count} pending document expiry jobs for document ID {document_id}"
            )
        return count

    async def reset_hung_jobs(self, timeout_minutes: Optional[int] = None) -> int:
        """Revert jobs stuck in processing longer than the timeout."""
        if timeout_minutes is None:
            timeout_minutes = self.config.hung_job_timeout_minutes
        count = await self.store.reset_hung_jobs(timeout_minutes)
        if count > 0:
            self.logger.info(f"Reset {count} hung email jobs")
        return count

    async def retry_failed(self, limit: int = 10) -> int:
        """Reset up to limit failed jobs for another round of attempts."""
        count = await self.store.retry_failed(limit)
        if count > 0:
            self.logger.info(f"Reset {count} failed jobs for retry")
        return count

    async def stats(self) -> JobStats:
        """Get job counts by status."""
        return await self.store.stats()
