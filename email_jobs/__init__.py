"""Durable email job queue backed by PostgreSQL."""

from email_jobs.config import EmailJobsConfig
from email_jobs.ddl import EMAIL_JOBS_TABLE_DDL
from email_jobs.errors import (
    EmailJobsError,
    InvalidPayloadError,
    JobNotFoundError,
    PermanentJobError,
    UnknownJobTypeError,
)
from email_jobs.models import Job, JobStats, JobStatus
from email_jobs.processor import EmailProcessor
from email_jobs.registry import ExecutorRegistry, executor_registry
from email_jobs.service import EmailJobService
from email_jobs.store import JobStore

__version__ = "0.1.0"

__all__ = [
    "EmailJobsConfig",
    "EMAIL_JOBS_TABLE_DDL",
    "EmailJobsError",
    "InvalidPayloadError",
    "JobNotFoundError",
    "PermanentJobError",
    "UnknownJobTypeError",
    "Job",
    "JobStats",
    "JobStatus",
    "EmailProcessor",
    "ExecutorRegistry",
    "executor_registry",
    "EmailJobService",
    "JobStore",
]
