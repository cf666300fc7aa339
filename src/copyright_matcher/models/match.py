"""
Match and Action Models
=======================

Externally visible records produced by a scan and by the action workflow.

Core Concepts:
    - CopyrightMatch: one (original, candidate) comparison per scan run
    - CopyrightAction: one enforcement decision, immutable once created
    - Unavailable: explicit "could not assess" outcome, distinct from a
      low-similarity match

Lifecycle:
    A match is never mutated. Its state is derived from the append-only
    list of actions attached to it (most recent first):

        unactioned -> sent | ignored | failed

Example:
    from copyright_matcher.models.match import ActionType, DataQuality

    ActionType("takedown")          # ActionType.TAKEDOWN
    ActionType("unsupported_type")  # raises ValueError
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DataQuality(str, Enum):
    """
    Sufficiency of the evidence behind a similarity score.

    Attributes:
        INSUFFICIENT: No frame pairs could be aligned
        LIMITED: Some pairs aligned, fewer than the configured minimum
        VERIFIED: Enough aligned pairs for automated handling
    """

    INSUFFICIENT = "insufficient"
    LIMITED = "limited"
    VERIFIED = "verified"


class ActionType(str, Enum):
    """Closed set of enforcement actions."""

    TAKEDOWN = "takedown"
    INFRINGEMENT_EMAIL = "infringement_email"
    IGNORED = "ignored"


class ActionStatus(str, Enum):
    """Terminal status of a single action."""

    SENT = "sent"
    IGNORED = "ignored"
    FAILED = "failed"


class MatchState(str, Enum):
    """Workflow state of a match, derived from its latest action."""

    UNACTIONED = "unactioned"
    SENT = "sent"
    IGNORED = "ignored"
    FAILED = "failed"


class CopyrightAction(BaseModel):
    """
    An enforcement decision attached to a match.

    Corrections are new actions, never edits.

    Attributes:
        id: Action identifier
        match_id: Match this action applies to
        action_type: Which action was taken
        status: Outcome of the action
        document_url: Generated notice (takedown only)
        automated: Whether the action was taken without an operator
        created_at: Creation time (UTC)
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Action identifier")
    match_id: str = Field(..., description="Match this action applies to")
    action_type: ActionType = Field(..., description="Which action was taken")
    status: ActionStatus = Field(..., description="Outcome of the action")
    document_url: Optional[str] = Field(
        default=None,
        description="URL of the generated notice (takedown only)",
    )
    automated: bool = Field(default=False, description="Taken without an operator")
    created_at: datetime = Field(..., description="Creation time (UTC)")


class CopyrightMatch(BaseModel):
    """
    Result of comparing one candidate URL against one original asset.

    Attributes:
        id: Match identifier
        original_ref: Reference of the original asset
        candidate_url: URL of the suspected copy
        platform: Platform hosting the candidate
        similarity_score: Mean fused score over all aligned frame pairs
        data_quality: Sufficiency of the aligned evidence
        aligned_pairs: Number of frame pairs that contributed
        keyframe_score / ocr_score / face_score / motion_score: Per-signal
            means over the aligned pairs
        is_match: similarity_score reached the configured match threshold
        created_at: Creation time (UTC)
        actions: Attached actions, most recent first (populated on read)
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Match identifier")
    original_ref: str = Field(..., description="Reference of the original asset")
    candidate_url: str = Field(..., description="URL of the suspected copy")
    platform: str = Field(default="other", description="Platform hosting the candidate")
    similarity_score: float = Field(..., ge=0.0, le=1.0)
    data_quality: DataQuality = Field(...)
    aligned_pairs: int = Field(default=0, ge=0)
    keyframe_score: float = Field(default=0.0, ge=0.0, le=1.0)
    ocr_score: float = Field(default=0.0, ge=0.0, le=1.0)
    face_score: float = Field(default=0.0, ge=0.0, le=1.0)
    motion_score: float = Field(default=0.0, ge=0.0, le=1.0)
    is_match: bool = Field(default=False)
    created_at: datetime = Field(...)
    actions: List[CopyrightAction] = Field(default_factory=list)

    @property
    def requires_review(self) -> bool:
        """Whether a human must review before any enforcement action."""
        return self.data_quality != DataQuality.VERIFIED


@dataclass(frozen=True, slots=True)
class Unavailable:
    """
    Explicit "could not assess" outcome of a scan or a fetch.

    Attributes:
        ref: Media reference that could not be used
        reason: Human-readable cause
        role: "original" or "candidate" when known
    """

    ref: str
    reason: str
    role: Optional[str] = None

    def to_dict(self) -> dict:
        """Export as dictionary for job results and logging."""
        return {
            "outcome": "unavailable",
            "ref": self.ref,
            "reason": self.reason,
            "role": self.role,
        }
