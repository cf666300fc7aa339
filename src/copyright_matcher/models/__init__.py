"""
Data Models
===========

Typed records for the copyright matching engine.

Models:
    Frames:
        - FrameSample: One sampled instant of a media source
        - FaceDetection, BoundingBox, MotionVector: Per-frame signal values
        - FrameSignals: Extracted signal bundle for one sample

    Comparison:
        - SignalComparison: Per-frame-pair scores

    Match:
        - CopyrightMatch, CopyrightAction: Persisted records
        - DataQuality, ActionType, ActionStatus, MatchState: Enums
        - Unavailable: Explicit "could not assess" outcome
"""

from copyright_matcher.models.frames import (
    BoundingBox,
    FaceDetection,
    FrameSample,
    FrameSignals,
    MotionVector,
)
from copyright_matcher.models.comparison import SignalComparison
from copyright_matcher.models.match import (
    ActionStatus,
    ActionType,
    CopyrightAction,
    CopyrightMatch,
    DataQuality,
    MatchState,
    Unavailable,
)

__all__ = [
    # Frames
    "FrameSample",
    "BoundingBox",
    "FaceDetection",
    "MotionVector",
    "FrameSignals",
    # Comparison
    "SignalComparison",
    # Match
    "DataQuality",
    "ActionType",
    "ActionStatus",
    "MatchState",
    "CopyrightAction",
    "CopyrightMatch",
    "Unavailable",
]
