"""
Action Workflow
===============

Enforcement state machine for copyright matches.

States:
    unactioned -> sent | ignored | failed

Actions:
    takedown            generate a notice, status sent, document_url set
    infringement_email  dispatch a notification, status sent
    ignored             status ignored, no document

Rules:
    - Every check (action type, match existence, review gate) runs before
      anything is written
    - A match is never mutated; each decision appends a new action
    - A failed notice or dispatch is persisted as a failed action and is
      never reported as sent
    - An action and its activity entry are written in one transaction; if
      that fails the action's notice is removed
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Union

import duckdb

from copyright_matcher.actions.notices import NoticeGenerationError, NoticeGenerator
from copyright_matcher.models.match import (
    ActionStatus,
    ActionType,
    CopyrightAction,
    CopyrightMatch,
    MatchState,
)
from copyright_matcher.storage import repository


logger = logging.getLogger(__name__)


class InvalidActionError(ValueError):
    """Raised when an action type is outside the closed set."""
    pass


class MatchNotFoundError(LookupError):
    """Raised when an action targets an unknown match."""
    pass


class ReviewRequiredError(Exception):
    """Raised when automated enforcement targets a non-verified match."""
    pass


class DispatchError(Exception):
    """Raised by a Notifier when a notification cannot be delivered."""
    pass


class Notifier(Protocol):
    """Delivers infringement emails."""

    def send_infringement_email(self, match: CopyrightMatch, action_id: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that records the email in the log instead of sending it."""

    def __init__(self, sender_name: str = "Content Protection Team") -> None:
        self.sender_name = sender_name
        self.sent_count: int = 0

    def send_infringement_email(self, match: CopyrightMatch, action_id: str) -> None:
        self.sent_count += 1
        logger.info(
            f"Infringement email from {self.sender_name!r} for match {match.id}: "
            f"{match.candidate_url} ({match.platform}) copies {match.original_ref}, "
            f"similarity={match.similarity_score:.2f} [action={action_id}]"
        )


def _utcnow() -> datetime:
    # Stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_action_type(value: Union[str, ActionType]) -> ActionType:
    """
    Validate an action type against the closed set.

    Raises:
        InvalidActionError: If the value is not a known action type
    """
    if isinstance(value, ActionType):
        return value
    try:
        return ActionType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in ActionType)
        raise InvalidActionError(f"Unsupported action type {value!r} (expected one of: {allowed})")


class ActionWorkflow:
    """
    Applies enforcement actions to persisted matches.

    Example:
        workflow = ActionWorkflow(conn, NoticeGenerator("./notices"))
        action = workflow.apply_action(match.id, "takedown")
        action.status, action.document_url
    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        notices: NoticeGenerator,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._conn = conn
        self._notices = notices
        self._notifier = notifier or LoggingNotifier(notices.sender_name)
        self._clock = clock

        self._actions_applied: int = 0
        self._actions_failed: int = 0
        self._actions_rejected: int = 0

    def apply_action(
        self,
        match_id: str,
        action_type: Union[str, ActionType],
        automated: bool = False,
    ) -> CopyrightAction:
        """
        Apply an enforcement action to a match.

        Args:
            match_id: Target match
            action_type: "takedown", "infringement_email" or "ignored"
            automated: Whether no operator reviewed this decision

        Returns:
            The persisted CopyrightAction

        Raises:
            InvalidActionError: Unknown action type (nothing written)
            MatchNotFoundError: Unknown match (nothing written)
            ReviewRequiredError: Automated enforcement on a match whose data
                quality is not verified (nothing written)
        """
        try:
            kind = parse_action_type(action_type)
        except InvalidActionError:
            self._actions_rejected += 1
            raise

        match = repository.get_match(self._conn, match_id)
        if match is None:
            self._actions_rejected += 1
            raise MatchNotFoundError(f"No copyright match with id {match_id!r}")

        if automated and kind != ActionType.IGNORED and match.requires_review:
            self._actions_rejected += 1
            raise ReviewRequiredError(
                f"Match {match_id} has {match.data_quality.value} data quality; "
                f"{kind.value} requires human review"
            )

        action_id = str(uuid.uuid4())
        now = self._clock()
        status, document_url = self._execute(kind, match, action_id, now)

        action = CopyrightAction(
            id=action_id,
            match_id=match_id,
            action_type=kind,
            status=status,
            document_url=document_url,
            automated=automated,
            created_at=now,
        )
        try:
            repository.record_action(
                self._conn,
                action,
                event=f"{kind.value}:{status.value}",
                detail=document_url,
            )
        except Exception:
            if kind == ActionType.TAKEDOWN and status == ActionStatus.SENT:
                self._notices.discard(action_id)
            raise

        if status == ActionStatus.FAILED:
            self._actions_failed += 1
            logger.error(f"Action {kind.value} failed for match {match_id} [action={action_id}]")
        else:
            self._actions_applied += 1
            logger.info(
                f"Action {kind.value} -> {status.value} for match {match_id} "
                f"[action={action_id}, automated={automated}]"
            )
        return action

    def _execute(
        self,
        kind: ActionType,
        match: CopyrightMatch,
        action_id: str,
        now: datetime,
    ) -> tuple:
        """Carry out the side effect of an action. Returns (status, document_url)."""
        if kind == ActionType.IGNORED:
            return ActionStatus.IGNORED, None

        if kind == ActionType.TAKEDOWN:
            try:
                return ActionStatus.SENT, self._notices.generate(match, action_id, now)
            except NoticeGenerationError as e:
                logger.error(f"Notice generation failed for match {match.id}: {e}")
                return ActionStatus.FAILED, None

        try:
            self._notifier.send_infringement_email(match, action_id)
        except Exception as e:
            logger.error(f"Email dispatch failed for match {match.id}: {e}")
            return ActionStatus.FAILED, None
        return ActionStatus.SENT, None

    def current_state(self, match_id: str) -> MatchState:
        """
        Derive the workflow state of a match from its action history.

        Raises:
            MatchNotFoundError: Unknown match
        """
        match = repository.get_match(self._conn, match_id)
        if match is None:
            raise MatchNotFoundError(f"No copyright match with id {match_id!r}")
        if not match.actions:
            return MatchState.UNACTIONED
        return MatchState(match.actions[0].status.value)

    def get_metrics(self) -> dict:
        """Get workflow metrics for observability."""
        return {
            "actions_applied": self._actions_applied,
            "actions_failed": self._actions_failed,
            "actions_rejected": self._actions_rejected,
        }
