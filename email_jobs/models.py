"""Data models for email jobs."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from email_jobs.errors import InvalidPayloadError


class JobStatus(str, Enum):
    """Job status values."""

    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class Job:
    """Represents an email job record."""

    def __init__(
        self,
        id: int,
        type: str,
        payload: str,
        status: JobStatus,
        scheduled_for: datetime,
        attempts: int,
        max_attempts: int,
        error: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.id = id
        self.type = type
        self.payload = payload
        self.status = JobStatus(status) if isinstance(status, str) else status
        self.scheduled_for = scheduled_for
        self.attempts = attempts
        self.max_attempts = max_attempts
        self.error = error
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def decode_payload(self) -> Any:
        """
        Deserialize the stored payload.

        Raises:
            InvalidPayloadError: If the payload is not valid JSON
        """
        if not isinstance(self.payload, (str, bytes, bytearray)):
            return self.payload
        try:
            return json.loads(self.payload)
        except (TypeError, ValueError) as e:
            raise InvalidPayloadError(self.type, str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "status": self.status.value,
            "scheduled_for": (
                self.scheduled_for.isoformat() if self.scheduled_for else None
            ),
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id}, type={self.type!r}, status={self.status.value}, "
            f"attempts={self.attempts}/{self.max_attempts})"
        )


class JobStats:
    """Aggregate job counts by status."""

    def __init__(
        self,
        pending: int = 0,
        processing: int = 0,
        completed: int = 0,
        failed: int = 0,
    ):
        self.pending = pending
        self.processing = processing
        self.completed = completed
        self.failed = failed

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed

    @classmethod
    def from_counts(cls, counts: Dict[str, int]) -> "JobStats":
        """Build stats from a status -> count mapping, ignoring unknown statuses."""
        known = {status.value for status in JobStatus}
        return cls(**{k: int(v) for k, v in counts.items() if k in known})

    def to_dict(self) -> Dict[str, int]:
        return {
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
            "total": self.total,
        }
