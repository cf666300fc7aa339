"""
Job Queue
=========

Reusable single-consumer work queue with explicit status transitions.

Status Transitions:
    pending -> processing -> completed
                          -> failed
                          -> pending (with retry_after)

The queue knows nothing about copyright matching. A consumer takes one
job with dequeue_one() and reports exactly one outcome for it.
"""

import itertools
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Union


logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Lifecycle status of a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Job:
    """
    One unit of work.

    Attributes:
        id: Job identifier
        job_type: Handler key
        payload: Handler input
        status: Current status
        retry_count: Retries already scheduled
        retry_after: Epoch seconds before which the job is not handed out
        result: Handler result once completed
        error: Error message once failed
    """

    job_type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.PENDING
    retry_count: int = 0
    retry_after: Optional[float] = None
    created_at: float = field(default_factory=time.time)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Completed:
    """The job succeeded."""

    result: Dict[str, Any]


@dataclass(frozen=True)
class Failed:
    """The job failed permanently."""

    error: str


@dataclass(frozen=True)
class RetryAfter:
    """The job should be handed out again no earlier than ``timestamp``."""

    timestamp: float


JobOutcome = Union[Completed, Failed, RetryAfter]


class UnknownJobError(KeyError):
    """Raised when reporting on a job the queue does not know."""
    pass


class JobQueue(Protocol):
    """Contract between a queue and its consumer."""

    def dequeue_one(self) -> Optional[Job]:
        ...

    def report(self, job_id: str, outcome: JobOutcome) -> None:
        ...


class InMemoryJobQueue:
    """
    Thread-safe in-process job queue.

    Jobs are handed out oldest first; a pending job with a retry_after in
    the future is skipped until that time has passed.

    Example:
        queue = InMemoryJobQueue()
        job_id = queue.enqueue("copyright_scan", {"original_ref": ..., ...})
        job = queue.dequeue_one()
        queue.report(job.id, Completed({"match_id": "..."}))
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._jobs: Dict[str, Job] = {}
        self._order: Dict[str, int] = {}
        self._counter = itertools.count()
        self._lock = threading.Lock()
        self._clock = clock

    def enqueue(self, job_type: str, payload: Optional[Dict[str, Any]] = None) -> str:
        """Add a pending job and return its id."""
        job = Job(job_type=job_type, payload=dict(payload or {}), created_at=self._clock())
        with self._lock:
            self._jobs[job.id] = job
            self._order[job.id] = next(self._counter)
        logger.debug(f"Enqueued job {job.id} ({job_type})")
        return job.id

    def dequeue_one(self) -> Optional[Job]:
        """Claim the oldest ready pending job, marking it processing."""
        now = self._clock()
        with self._lock:
            ready = [
                job for job in self._jobs.values()
                if job.status == JobStatus.PENDING
                and (job.retry_after is None or job.retry_after <= now)
            ]
            if not ready:
                return None
            job = min(ready, key=lambda j: (j.created_at, self._order[j.id]))
            job.status = JobStatus.PROCESSING
            return job

    def report(self, job_id: str, outcome: JobOutcome) -> None:
        """
        Record the outcome of a processing job.

        Raises:
            UnknownJobError: If the job id is unknown
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise UnknownJobError(job_id)

            if isinstance(outcome, Completed):
                job.status = JobStatus.COMPLETED
                job.result = outcome.result
                job.retry_after = None
            elif isinstance(outcome, Failed):
                job.status = JobStatus.FAILED
                job.error = outcome.error
                job.retry_after = None
            elif isinstance(outcome, RetryAfter):
                job.status = JobStatus.PENDING
                job.retry_count += 1
                job.retry_after = outcome.timestamp
            else:
                raise TypeError(f"Unknown job outcome: {outcome!r}")

        logger.debug(f"Job {job_id} reported: {outcome}")

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda j: self._order[j.id])
        if status is not None:
            jobs = [job for job in jobs if job.status == status]
        return jobs
