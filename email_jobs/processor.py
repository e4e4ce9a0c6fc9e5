"""Polling processor that claims and executes email jobs."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from email_jobs.config import EmailJobsConfig
from email_jobs.errors import PermanentJobError
from email_jobs.models import Job, JobStatus
from email_jobs.registry import ExecutorRegistry
from email_jobs.store import JobStore

StartupHook = Callable[[], Awaitable[Any]]

MAX_BACKOFF_SECONDS = 3600


class EmailProcessor:
    """
    Single-process job processor.

    Polls the store for the next eligible job, runs it through the executor
    registered for its type and records the outcome. A separate sweep resets
    jobs left in processing by a crashed processor. All state lives on the
    instance, so several processors can run side by side; claim exclusivity
    comes from the store.

    Example:
        ```python
        processor = EmailProcessor(JobStore(pool), registry, config)
        await processor.start()
        ...
        await processor.stop()
        ```
    """

    def __init__(
        self,
        store: JobStore,
        registry: ExecutorRegistry,
        config: EmailJobsConfig,
        logger: Optional[logging.Logger] = None,
        startup_hooks: Optional[Iterable[StartupHook]] = None,
    ):
        """
        Initialize the processor.

        Args:
            store: Job store to claim from and report to
            registry: Executors keyed by job type
            config: Intervals, timeouts and retry backoff
            logger: Logger instance
            startup_hooks: Async callables run once on start, after the hung
                job reset (e.g. a scan that re-schedules missed notifications)
        """
        self.store = store
        self.registry = registry
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.startup_hooks = list(startup_hooks or [])

        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._sweep_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Reset hung jobs, run startup hooks and begin polling."""
        if self._running:
            self.logger.warning("Email processor is already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self.logger.info(
            f"Email job processor started with {self.config.poll_interval_seconds}s interval"
        )

        await self._reset_hung_jobs()
        await self._run_startup_hooks()

        self._poll_task = asyncio.create_task(self._poll_loop())
        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """
        Stop polling.

        A job that is currently executing is allowed to finish; no new job is
        claimed afterwards. Returns once both loops have exited.
        """
        if not self._running:
            return

        self._running = False
        self._stop_event.set()

        tasks = [t for t in (self._poll_task, self._sweep_task) if t is not None]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(
                result, asyncio.CancelledError
            ):
                self.logger.error(f"Email processor task ended with error: {result}")

        self._poll_task = None
        self._sweep_task = None
        self.logger.info("Email job processor stopped")

    async def get_status(self) -> dict[str, Any]:
        """Get running state and job counts."""
        stats = await self.store.stats()
        return {"is_running": self._running, "job_stats": stats.to_dict()}

    async def process_next_job(self) -> Optional[Job]:
        """
        Claim and execute one job.

        Returns the claimed job, or None when no job was eligible. Store errors
        propagate; executor errors are recorded on the job.
        """
        job = await self.store.claim_next()
        if job is None:
            return None

        self.logger.info(
            f"Executing email job {job.id} (type={job.type}, "
            f"attempt={job.attempts}/{job.max_attempts})"
        )
        await self._execute(job)
        return job

    async def _execute(self, job: Job) -> None:
        try:
            payload = job.decode_payload()
            executor = self.registry.require_executor(job.type)
            await executor(payload)
        except PermanentJobError as e:
            self.logger.error(f"Email job {job.id} of type {job.type} cannot succeed: {e}")
            await self.store.mark_failed(job.id, str(e))
            job.status = JobStatus.failed
            job.error = str(e)
            return
        except Exception as e:
            error_message = str(e) or type(e).__name__
            self.logger.error(
                f"Email job {job.id} of type {job.type} processing error: {error_message}",
                exc_info=True,
            )
            retry_at = self._next_retry_at(job)
            job.status = await self.store.mark_failed_or_retry(
                job.id, error_message, job.attempts, job.max_attempts, retry_at
            )
            job.error = error_message
            if job.status == JobStatus.failed:
                self.logger.error(
                    f"Email job {job.id} marked as failed after {job.attempts} attempts"
                )
            else:
                self.logger.info(
                    f"Email job {job.id} will retry (attempt {job.attempts}/{job.max_attempts})"
                )
            return

        await self.store.mark_completed(job.id)
        job.status = JobStatus.completed
        job.error = None
        self.logger.info(f"Email job {job.id} of type {job.type} processed successfully")

    def _next_retry_at(self, job: Job) -> Optional[datetime]:
        if job.attempts_exhausted:
            return None
        try:
            delay = _calculate_backoff_with_jitter(self.config.retry_backoff, job.attempts)
        except (TypeError, ValueError) as e:
            # The failure must still be recorded, so retry without delay
            self.logger.error(
                f"Invalid retry backoff policy {self.config.retry_backoff!r}: {e}"
            )
            return None
        if delay <= 0:
            return None
        return datetime.now(timezone.utc) + timedelta(seconds=delay)

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                job = await self.process_next_job()
            except Exception as e:
                self.logger.error(f"Error in email processor poll: {e}", exc_info=True)
                job = None

            # Keep draining while jobs finish; a job sent back for retry waits
            # the full interval like an empty poll
            if job is not None and job.status != JobStatus.pending:
                delay = self.config.drain_delay_seconds
            else:
                delay = self.config.poll_interval_seconds
            if await self._wait_for_stop(delay):
                break

    async def _sweep_loop(self) -> None:
        while self._running:
            if await self._wait_for_stop(self.config.hung_job_sweep_interval_seconds):
                break
            await self._reset_hung_jobs()

    async def _wait_for_stop(self, seconds: float) -> bool:
        """Sleep up to seconds; return True if stop was requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def _reset_hung_jobs(self) -> None:
        try:
            count = await self.store.reset_hung_jobs(self.config.hung_job_timeout_minutes)
            if count > 0:
                self.logger.info(f"Reset {count} hung email jobs")
        except Exception as e:
            self.logger.error(f"Error resetting hung jobs: {e}", exc_info=True)

    async def _run_startup_hooks(self) -> None:
        for hook in self.startup_hooks:
            name = getattr(hook, "__name__", repr(hook))
            try:
                await hook()
            except Exception as e:
                self.logger.error(f"Startup hook {name} failed: {e}", exc_info=True)


def _calculate_backoff_with_jitter(backoff_policy: dict[str, Any], attempt: int) -> int:
    """
    Calculate retry delay with jitter based on policy and attempt number.

    Args:
        backoff_policy: Backoff policy configuration
        attempt: Attempts made so far (1-indexed)

    Returns:
        Delay in seconds, 0 when the policy asks for no delay
    """
    base_delay = _calculate_backoff(backoff_policy, attempt)
    if base_delay <= 0:
        return 0

    # Add ±20% jitter to prevent thundering herd
    jitter_factor = 1.0 + random.uniform(-0.2, 0.2)
    return max(1, int(base_delay * jitter_factor))


def _calculate_backoff(backoff_policy: dict[str, Any], attempt: int) -> int:
    """
    Calculate retry delay based on policy and attempt number.

    Args:
        backoff_policy: Backoff policy configuration
        attempt: Attempts made so far (1-indexed)

    Returns:
        Delay in seconds, capped at one hour
    """
    policy_type = backoff_policy.get("type", "exponential")
    base_seconds = backoff_policy.get("base_seconds", 10)

    if policy_type == "none":
        return 0
    elif policy_type == "constant":
        return min(base_seconds, MAX_BACKOFF_SECONDS)
    elif policy_type == "linear":
        return min(base_seconds * attempt, MAX_BACKOFF_SECONDS)
    else:
        # Exponential backoff: base * 2^(attempt-1)
        return min(base_seconds * (2 ** (attempt - 1)), MAX_BACKOFF_SECONDS)
