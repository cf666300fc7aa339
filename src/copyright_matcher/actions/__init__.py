"""
Actions Module
==============

Enforcement workflow for confirmed matches.

This module provides:
    - ActionWorkflow: validated, append-only action application
    - NoticeGenerator: takedown notice documents
    - Notifier / LoggingNotifier: infringement email dispatch
"""

from copyright_matcher.actions.notices import NoticeGenerationError, NoticeGenerator
from copyright_matcher.actions.workflow import (
    ActionWorkflow,
    DispatchError,
    InvalidActionError,
    LoggingNotifier,
    MatchNotFoundError,
    Notifier,
    ReviewRequiredError,
    parse_action_type,
)

__all__ = [
    "ActionWorkflow",
    "parse_action_type",
    "InvalidActionError",
    "MatchNotFoundError",
    "ReviewRequiredError",
    "DispatchError",
    "Notifier",
    "LoggingNotifier",
    "NoticeGenerator",
    "NoticeGenerationError",
]
