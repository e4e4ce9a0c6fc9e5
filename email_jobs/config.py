"""Configuration for the email jobs processor."""

import json
import os
from typing import Any, Dict, Optional

BACKOFF_TYPES = ("none", "constant", "linear", "exponential")


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


class EmailJobsConfig:
    """Configuration object for email jobs."""

    def __init__(
        self,
        db_dsn: str,
        poll_interval_seconds: float = 60.0,
        drain_delay_seconds: Optional[float] = None,
        hung_job_timeout_minutes: int = 15,
        hung_job_sweep_interval_seconds: float = 300.0,
        default_max_attempts: int = 3,
        retry_backoff: Optional[Dict[str, Any]] = None,
        admin_auth_token: Optional[str] = None,
    ):
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if hung_job_timeout_minutes < 1:
            raise ValueError("hung_job_timeout_minutes must be at least 1")
        if hung_job_sweep_interval_seconds <= 0:
            raise ValueError("hung_job_sweep_interval_seconds must be positive")
        if default_max_attempts < 1:
            raise ValueError("default_max_attempts must be at least 1")

        self.db_dsn = db_dsn
        self.poll_interval_seconds = poll_interval_seconds
        # Short pause between jobs while the queue is draining
        self.drain_delay_seconds = (
            drain_delay_seconds
            if drain_delay_seconds is not None
            else min(1.0, poll_interval_seconds / 3)
        )
        self.hung_job_timeout_minutes = hung_job_timeout_minutes
        self.hung_job_sweep_interval_seconds = hung_job_sweep_interval_seconds
        self.default_max_attempts = default_max_attempts
        self.retry_backoff = retry_backoff or {"type": "none"}
        self.admin_auth_token = admin_auth_token

        backoff_type = self.retry_backoff.get("type", "exponential")
        if backoff_type not in BACKOFF_TYPES:
            raise ValueError(
                f"Unknown retry backoff type {backoff_type!r}, "
                f"expected one of {', '.join(BACKOFF_TYPES)}"
            )
        base_seconds = self.retry_backoff.get("base_seconds", 10)
        if (
            isinstance(base_seconds, bool)
            or not isinstance(base_seconds, (int, float))
            or base_seconds < 0
        ):
            raise ValueError(
                f"retry backoff base_seconds must be a non-negative number, "
                f"got {base_seconds!r}"
            )

    @classmethod
    def from_env(cls) -> "EmailJobsConfig":
        """Create config from environment variables."""
        db_dsn = os.getenv("EMAIL_JOBS_DB_DSN")
        if not db_dsn:
            raise ValueError("EMAIL_JOBS_DB_DSN environment variable is required")

        retry_backoff = None
        retry_backoff_str = os.getenv("EMAIL_JOBS_RETRY_BACKOFF")
        if retry_backoff_str:
            try:
                retry_backoff = json.loads(retry_backoff_str)
            except json.JSONDecodeError as e:
                raise ValueError(
                    f"Invalid JSON in EMAIL_JOBS_RETRY_BACKOFF: {e}"
                ) from e
            if not isinstance(retry_backoff, dict):
                raise ValueError("EMAIL_JOBS_RETRY_BACKOFF must be a JSON object")

        return cls(
            db_dsn=db_dsn,
            poll_interval_seconds=_float_env("EMAIL_JOBS_POLL_INTERVAL_SECONDS", 60.0),
            drain_delay_seconds=_float_env("EMAIL_JOBS_DRAIN_DELAY_SECONDS", None),
            hung_job_timeout_minutes=_int_env("EMAIL_JOBS_HUNG_JOB_TIMEOUT_MINUTES", 15),
            hung_job_sweep_interval_seconds=_float_env(
                "EMAIL_JOBS_HUNG_JOB_SWEEP_INTERVAL_SECONDS", 300.0
            ),
            default_max_attempts=_int_env("EMAIL_JOBS_DEFAULT_MAX_ATTEMPTS", 3),
            retry_backoff=retry_backoff,
            admin_auth_token=os.getenv("EMAIL_JOBS_ADMIN_AUTH_TOKEN"),
        )
