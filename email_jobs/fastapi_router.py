"""FastAPI router exposing the administrative email jobs API."""

import logging
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from email_jobs.errors import JobNotFoundError
from email_jobs.models import JobStatus
from email_jobs.processor import EmailProcessor
from email_jobs.service import EmailJobService


logger = logging.getLogger(__name__)


class JobStatsResponse(BaseModel):
    """Response model for job counts."""

    pending: int
    processing: int
    completed: int
    failed: int
    total: int


class ProcessorStatusResponse(BaseModel):
    """Response model for processor status."""

    is_running: bool
    job_stats: JobStatsResponse


class JobResponse(BaseModel):
    """Response model for job details."""

    id: int
    type: str
    payload: str
    status: str
    scheduled_for: Optional[str] = None
    attempts: int
    max_attempts: int
    error: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class RetryFailedRequest(BaseModel):
    """Request model for retrying failed jobs."""

    limit: int = Field(10, ge=1, le=1000)


class ResetHungRequest(BaseModel):
    """Request model for resetting hung jobs."""

    timeout_minutes: Optional[int] = Field(None, ge=1)


class AffectedJobsResponse(BaseModel):
    """Response model for bulk operations."""

    count: int


def create_email_jobs_router(
    job_service_factory: Callable[[], EmailJobService],
    processor_factory: Optional[Callable[[], EmailProcessor]] = None,
    auth_token: Optional[str] = None,
) -> APIRouter:
    """
    Create FastAPI router for the email jobs admin API.

    Args:
        job_service_factory: Callable that returns an EmailJobService instance
        processor_factory: Optional callable returning the running processor,
            enables the processor status endpoint
        auth_token: Optional auth token required by the mutating endpoints

    Returns:
        APIRouter instance
    """
    router = APIRouter(prefix="/email-jobs")

    async def get_job_service() -> EmailJobService:
        """Dependency to get EmailJobService instance."""
        return job_service_factory()

    async def verify_auth_token(
        x_email_jobs_token: Optional[str] = Header(None, alias="X-Email-Jobs-Token")
    ) -> None:
        """Verify auth token if configured."""
        if auth_token:
            if not x_email_jobs_token or x_email_jobs_token != auth_token:
                raise HTTPException(
                    status_code=401, detail="Invalid or missing auth token"
                )

    @router.get("/stats", response_model=JobStatsResponse)
    async def get_stats(job_service: EmailJobService = Depends(get_job_service)):
        """Get job counts by status."""
        try:
            stats = await job_service.stats()
            return JobStatsResponse(**stats.to_dict())
        except Exception as e:
            logger.exception("Error getting job stats")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    @router.get("/processor", response_model=ProcessorStatusResponse)
    async def get_processor_status():
        """Get processor running state and job counts."""
        if processor_factory is None:
            raise HTTPException(status_code=404, detail="Processor status not available")
        try:
            status = await processor_factory().get_status()
            return ProcessorStatusResponse(**status)
        except Exception as e:
            logger.exception("Error getting processor status")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    @router.get("/jobs", response_model=List[JobResponse])
    async def list_jobs(
        type: Optional[str] = Query(None),
        status: Optional[JobStatus] = Query(None),
        limit: int = Query(50, ge=1, le=1000),
        job_service: EmailJobService = Depends(get_job_service),
    ):
        """List jobs with optional filters."""
        try:
            jobs = await job_service.list_jobs(
                type=type,
                status=status.value if status else None,
                limit=limit,
            )
            return [JobResponse(**job.to_dict()) for job in jobs]
        except Exception as e:
            logger.exception("Error listing jobs")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    @router.get("/jobs/{job_id}", response_model=JobResponse)
    async def get_job(
        job_id: int,
        job_service: EmailJobService = Depends(get_job_service),
    ):
        """Get job details by ID."""
        try:
            job = await job_service.get_job(job_id)
            return JobResponse(**job.to_dict())
        except JobNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except Exception as e:
            logger.exception("Error getting job")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    @router.post("/retry-failed", response_model=AffectedJobsResponse)
    async def retry_failed(
        request: RetryFailedRequest,
        job_service: EmailJobService = Depends(get_job_service),
        _: None = Depends(verify_auth_token),
    ):
        """Reset failed jobs to pending with a fresh attempt budget."""
        try:
            count = await job_service.retry_failed(request.limit)
            return AffectedJobsResponse(count=count)
        except Exception as e:
            logger.exception("Error retrying failed jobs")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    @router.post("/reset-hung", response_model=AffectedJobsResponse)
    async def reset_hung(
        request: ResetHungRequest,
        job_service: EmailJobService = Depends(get_job_service),
        _: None = Depends(verify_auth_token),
    ):
        """Revert jobs stuck in processing back to pending."""
        try:
            count = await job_service.reset_hung_jobs(request.timeout_minutes)
            return AffectedJobsResponse(count=count)
        except Exception as e:
            logger.exception("Error resetting hung jobs")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    return router
