"""
Comparison Models
=================

Per-frame-pair similarity produced by the comparators and fusion layer.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SignalComparison:
    """
    Similarity between one original and one candidate FrameSignals.

    Purely a function of its two inputs. Every score is in [0, 1].
    """

    keyframe_score: float
    ocr_score: float
    face_score: float
    motion_score: float
    overall_score: float

    def __post_init__(self) -> None:
        """Validate invariants."""
        for name in (
            "keyframe_score",
            "ocr_score",
            "face_score",
            "motion_score",
            "overall_score",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "keyframe_score": round(self.keyframe_score, 4),
            "ocr_score": round(self.ocr_score, 4),
            "face_score": round(self.face_score, 4),
            "motion_score": round(self.motion_score, 4),
            "overall_score": round(self.overall_score, 4),
        }
