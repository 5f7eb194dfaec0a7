"""Background jobs for the long-running pipeline phases."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Coroutine, Optional

from .exceptions import NotFoundError, ServiceError

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobType(str, Enum):
    """Pipeline phase a job runs."""

    GENERATE = "generate"
    DIRECT = "direct"


class JobStatus(str, Enum):
    """Job status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Job:
    """One Generate or Direct run started in the background."""

    id: str
    type: JobType
    status: JobStatus = JobStatus.PENDING
    result: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    completed_steps: int = 0
    total_steps: Optional[int] = None
    created_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def report(self, done: int, total: int) -> None:
        """Progress callback, e.g. panels remastered so far."""
        self.completed_steps = done
        self.total_steps = total


class JobService:
    """Tracks background jobs.

    Jobs run to completion; there is no cancellation. Only the most recent
    ``max_finished`` finished jobs are kept.
    """

    def __init__(self, max_finished: int = 50):
        self.max_finished = max_finished
        self._jobs: dict[str, Job] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def create_job(
        self,
        job_type: JobType,
        total_steps: Optional[int] = None,
        metadata: Optional[dict] = None,
    ) -> Job:
        """Create a pending job.

        Args:
            job_type: Pipeline phase the job runs
            total_steps: Number of progress steps, if known up front
            metadata: Request details shown with the job
        """
        self._prune()
        job = Job(
            id=str(uuid.uuid4()),
            type=JobType(job_type),
            total_steps=total_steps,
            metadata=metadata or {},
        )
        self._jobs[job.id] = job
        return job

    def get_job(self, job_id: str) -> Job:
        """Get job by ID.

        Raises:
            NotFoundError: If job not found
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[JobType] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[Job], int]:
        """List jobs, newest first.

        Returns:
            Tuple of (jobs, total_count)
        """
        jobs = [
            j
            for j in self._jobs.values()
            if (status is None or j.status == status)
            and (job_type is None or j.type == job_type)
        ]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[offset:offset + limit], len(jobs)

    async def run_job(self, job: Job, coro: Coroutine) -> Job:
        """Run a job's coroutine and record its outcome on the job.

        Service errors are recorded with their code; anything else is
        recorded as an internal error and logged with its traceback.
        """
        job.status = JobStatus.RUNNING
        job.started_at = _now()

        try:
            job.result = await coro
            job.status = JobStatus.COMPLETED
            logger.info("Job %s (%s) completed", job.id, job.type.value)
        except ServiceError as e:
            job.status = JobStatus.FAILED
            job.error = e.message
            job.error_code = e.code
            logger.warning("Job %s (%s) failed: %s", job.id, job.type.value, e.message)
        except Exception as e:
            job.status = JobStatus.FAILED
            job.error = str(e)
            job.error_code = "INTERNAL_ERROR"
            logger.exception("Job %s (%s) crashed", job.id, job.type.value)
        finally:
            job.completed_at = _now()

        return job

    def start_job(self, job: Job, coro: Coroutine) -> asyncio.Task:
        """Run ``coro`` for ``job`` on the current loop."""
        task = asyncio.create_task(self.run_job(job, coro))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.id, None))
        return task

    def _prune(self) -> None:
        finished = sorted(
            (j for j in self._jobs.values() if j.finished),
            key=lambda j: j.completed_at or j.created_at,
        )
        for job in finished[: max(0, len(finished) - self.max_finished)]:
            del self._jobs[job.id]
