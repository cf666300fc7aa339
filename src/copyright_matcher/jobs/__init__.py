"""
Jobs Module
===========

Reusable scheduling component: work items in, outcome out.

This module provides:
    - Job, JobStatus and the Completed / Failed / RetryAfter outcomes
    - JobQueue protocol and a thread-safe InMemoryJobQueue
    - RetryPolicy and the polling JobWorker
"""

from copyright_matcher.jobs.queue import (
    Completed,
    Failed,
    InMemoryJobQueue,
    Job,
    JobOutcome,
    JobQueue,
    JobStatus,
    RetryAfter,
    UnknownJobError,
)
from copyright_matcher.jobs.worker import JobHandler, JobWorker, RetryPolicy

__all__ = [
    "Job",
    "JobStatus",
    "JobOutcome",
    "Completed",
    "Failed",
    "RetryAfter",
    "JobQueue",
    "InMemoryJobQueue",
    "UnknownJobError",
    "RetryPolicy",
    "JobWorker",
    "JobHandler",
]
