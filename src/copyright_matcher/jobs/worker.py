"""
Job Worker
==========

Single-consumer polling loop over a JobQueue.

For each job the worker looks up the handler registered for its
job_type, awaits it, and reports exactly one outcome:

    handler returned             -> Completed(result)
    RateLimitedError             -> RetryAfter(now + backoff), or Failed
                                    once max_retries is reached
    any other exception          -> Failed(error)
    no handler for job_type      -> Failed
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from copyright_matcher.errors import RateLimitedError
from copyright_matcher.jobs.queue import (
    Completed,
    Failed,
    Job,
    JobOutcome,
    JobQueue,
    RetryAfter,
)


logger = logging.getLogger(__name__)

JobHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class RetryPolicy:
    """
    Exponential backoff bounded by a retry count.

    delay = base_delay · 2^retry_count
    """

    def __init__(self, max_retries: int = 5, base_delay_seconds: float = 1.0) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if base_delay_seconds <= 0:
            raise ValueError(f"base_delay_seconds must be > 0, got {base_delay_seconds}")
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds

    def delay_for(self, retry_count: int) -> float:
        return self.base_delay_seconds * (2 ** retry_count)

    def next_outcome(
        self,
        job: Job,
        now: float,
        retry_after_hint: Optional[float] = None,
    ) -> JobOutcome:
        """
        Outcome for a rate-limited job.

        A server-provided retry hint is honoured when it is longer than the
        computed backoff.
        """
        if job.retry_count >= self.max_retries:
            return Failed(f"max retries reached ({self.max_retries}) after rate limiting")

        delay = self.delay_for(job.retry_count)
        if retry_after_hint is not None:
            delay = max(delay, retry_after_hint)
        return RetryAfter(now + delay)


class JobWorker:
    """
    Polls a queue and dispatches jobs to handlers.

    Example:
        worker = JobWorker(queue, {"copyright_scan": scan_handler})
        task = asyncio.create_task(worker.run())
        ...
        await worker.stop()
        await task
    """

    def __init__(
        self,
        queue: JobQueue,
        handlers: Dict[str, JobHandler],
        retry_policy: Optional[RetryPolicy] = None,
        poll_interval_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.queue = queue
        self.handlers = dict(handlers)
        self.retry_policy = retry_policy or RetryPolicy()
        self.poll_interval_seconds = poll_interval_seconds
        self._clock = clock

        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        self._jobs_completed: int = 0
        self._jobs_failed: int = 0
        self._jobs_retried: int = 0

        logger.info(
            f"JobWorker initialized: handlers={sorted(self.handlers)}, "
            f"max_retries={self.retry_policy.max_retries}"
        )

    async def run_once(self) -> Optional[JobOutcome]:
        """
        Process at most one job.

        Returns:
            The reported outcome, or None if no job was ready
        """
        job = self.queue.dequeue_one()
        if job is None:
            return None

        attempt = job.retry_count + 1
        outcome = await self._process(job)
        self.queue.report(job.id, outcome)

        if isinstance(outcome, Completed):
            self._jobs_completed += 1
            logger.info(f"Job {job.id} ({job.job_type}) completed")
        elif isinstance(outcome, RetryAfter):
            self._jobs_retried += 1
            logger.warning(
                f"Job {job.id} ({job.job_type}) rate limited, retry "
                f"{attempt}/{self.retry_policy.max_retries} "
                f"in {outcome.timestamp - self._clock():.1f}s"
            )
        else:
            self._jobs_failed += 1
            logger.error(f"Job {job.id} ({job.job_type}) failed: {outcome.error}")
        return outcome

    async def _process(self, job: Job) -> JobOutcome:
        handler = self.handlers.get(job.job_type)
        if handler is None:
            return Failed(f"no handler for job type {job.job_type!r}")

        try:
            result = await handler(job.payload)
        except RateLimitedError as e:
            return self.retry_policy.next_outcome(job, self._clock(), e.retry_after_seconds)
        except Exception as e:
            logger.exception(f"Handler error for job {job.id}")
            return Failed(f"{type(e).__name__}: {e}")

        return Completed(result)

    async def run(self) -> None:
        """
        Poll until stop() is called.

        Sleeps poll_interval_seconds whenever the queue has nothing ready.
        """
        self._running = True
        self._stop_event.clear()
        logger.info("JobWorker started")

        while self._running:
            outcome = await self.run_once()
            if outcome is not None:
                continue

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.poll_interval_seconds,
                )
                # Stop event was set, exit
                break
            except asyncio.TimeoutError:
                pass

        logger.info("JobWorker stopped")

    async def stop(self) -> None:
        """Signal the run loop to exit after the current job."""
        logger.info("JobWorker stopping...")
        self._running = False
        self._stop_event.set()

    def get_metrics(self) -> dict:
        """Get worker metrics for observability."""
        return {
            "jobs_completed": self._jobs_completed,
            "jobs_failed": self._jobs_failed,
            "jobs_retried": self._jobs_retried,
        }
