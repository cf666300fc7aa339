"""
Copyright Job Handlers
======================

Bind the match engine and the action workflow to job types.

Job Types:
    copyright_scan    {"original_ref", "candidate_url", "intervals"?, "platform"?}
    copyright_action  {"match_id", "action_type", "automated"?}
"""

import time
from typing import Any, Callable, Dict

from copyright_matcher.actions.workflow import ActionWorkflow
from copyright_matcher.engine import MatchEngine
from copyright_matcher.jobs.queue import JobQueue
from copyright_matcher.jobs.worker import JobHandler, JobWorker, RetryPolicy
from copyright_matcher.models.match import Unavailable


SCAN_JOB = "copyright_scan"
ACTION_JOB = "copyright_action"


def make_scan_handler(engine: MatchEngine) -> JobHandler:
    """
    Handler running one scan.

    An unavailable source completes the job with an explicit
    "unavailable" result; it is an answer, not a failure.
    """

    async def handle(payload: Dict[str, Any]) -> Dict[str, Any]:
        result = await engine.scan(
            payload["original_ref"],
            payload["candidate_url"],
            intervals=payload.get("intervals"),
            platform=payload.get("platform"),
        )
        if isinstance(result, Unavailable):
            return result.to_dict()
        return {
            "outcome": "match",
            "match_id": result.id,
            "similarity_score": result.similarity_score,
            "data_quality": result.data_quality.value,
            "is_match": result.is_match,
        }

    return handle


def make_action_handler(workflow: ActionWorkflow) -> JobHandler:
    """Handler applying one enforcement action."""

    async def handle(payload: Dict[str, Any]) -> Dict[str, Any]:
        action = workflow.apply_action(
            payload["match_id"],
            payload["action_type"],
            automated=bool(payload.get("automated", False)),
        )
        return {
            "outcome": "action",
            "action_id": action.id,
            "status": action.status.value,
            "document_url": action.document_url,
        }

    return handle


def create_handlers(engine: MatchEngine, workflow: ActionWorkflow) -> Dict[str, JobHandler]:
    return {
        SCAN_JOB: make_scan_handler(engine),
        ACTION_JOB: make_action_handler(workflow),
    }


def create_worker(
    settings,
    queue: JobQueue,
    engine: MatchEngine,
    workflow: ActionWorkflow,
    clock: Callable[[], float] = time.time,
) -> JobWorker:
    """Create a JobWorker for the copyright job types, wired from settings."""
    return JobWorker(
        queue,
        create_handlers(engine, workflow),
        retry_policy=RetryPolicy(
            max_retries=settings.worker.max_retries,
            base_delay_seconds=settings.worker.base_delay_seconds,
        ),
        poll_interval_seconds=settings.worker.poll_interval_seconds,
        clock=clock,
    )
