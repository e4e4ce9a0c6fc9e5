"""Unit tests for models module."""

from datetime import datetime, timezone

import pytest

from email_jobs.errors import InvalidPayloadError
from email_jobs.models import Job, JobStats, JobStatus


def make_job(**overrides):
    values = dict(
        id=1,
        type="echo",
        payload='{"msg": "hi"}',
        status="pending",
        scheduled_for=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
        attempts=0,
        max_attempts=3,
    )
    values.update(overrides)
    return Job(**values)


def test_job_status_enum():
    """Test JobStatus enum values."""
    assert JobStatus.pending.value == "pending"
    assert JobStatus.processing.value == "processing"
    assert JobStatus.completed.value == "completed"
    assert JobStatus.failed.value == "failed"
    assert len(JobStatus) == 4


def test_job_coerces_status_string():
    job = make_job(status="processing")

    assert job.status is JobStatus.processing


def test_decode_payload():
    assert make_job().decode_payload() == {"msg": "hi"}


def test_decode_payload_invalid_json():
    """Test that a corrupt payload raises InvalidPayloadError."""
    job = make_job(payload="{broken")

    with pytest.raises(InvalidPayloadError) as exc_info:
        job.decode_payload()

    assert "Invalid job data format for echo" in str(exc_info.value)


def test_attempts_exhausted():
    assert not make_job(attempts=2).attempts_exhausted
    assert make_job(attempts=3).attempts_exhausted


def test_job_to_dict():
    """Test Job serialization to dict."""
    job = make_job(error="smtp down", created_at=None)

    data = job.to_dict()

    assert data["id"] == 1
    assert data["status"] == "pending"
    assert data["scheduled_for"] == "2026-01-01T12:00:00+00:00"
    assert data["error"] == "smtp down"
    assert data["created_at"] is None


def test_job_stats_from_counts_ignores_unknown_status():
    stats = JobStats.from_counts({"pending": 2, "failed": 1, "archived": 9})

    assert stats.to_dict() == {
        "pending": 2,
        "processing": 0,
        "completed": 0,
        "failed": 1,
        "total": 3,
    }


def test_empty_job_stats():
    """Test that an empty table reports zero for every status."""
    assert JobStats().total == 0
