"""Job routes."""

from typing import Optional

from fastapi import APIRouter, Query

from nanodirector_services import JobStatus, JobType
from nanodirector_api.deps import JobsDep, Token
from nanodirector_api.schemas import ErrorResponse, JobStatusResponse, job_to_status

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get(
    "",
    response_model=list[JobStatusResponse],
    responses={401: {"model": ErrorResponse}},
)
async def list_jobs(
    jobs: JobsDep,
    token: Token,
    status_filter: Optional[JobStatus] = Query(None, alias="status"),
    job_type: Optional[JobType] = Query(None, alias="type"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """List jobs, newest first."""
    found, _ = jobs.list_jobs(status=status_filter, job_type=job_type, limit=limit, offset=offset)
    return [job_to_status(job) for job in found]


@router.get(
    "/{job_id}",
    response_model=JobStatusResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_job(job_id: str, jobs: JobsDep, token: Token):
    """Get job status."""
    return job_to_status(jobs.get_job(job_id))
