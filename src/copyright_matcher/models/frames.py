"""
Frame Signal Models
===================

Typed data passed between the sampler, the extractors and the comparators.

Design Rules:
    - All models are immutable (frozen)
    - Comparators only ever see FrameSignals, never pixels
    - A missing signal is an empty value, never an exception
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

import numpy as np


@dataclass(frozen=True, slots=True)
class FrameSample:
    """
    One sampled instant of a media source.

    Attributes:
        timestamp: Seconds from the start of the source
        interval: Sampling interval that produced this sample
        thumbnail: Downscaled BGR pixels (H, W, 3), uint8
    """

    timestamp: float
    interval: float
    thumbnail: np.ndarray = field(compare=False)

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.timestamp < 0:
            raise ValueError("timestamp must be non-negative")
        if self.interval <= 0:
            raise ValueError("interval must be positive")

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixels."""
        return (
            f"FrameSample(t={self.timestamp:.2f}, "
            f"interval={self.interval:g}, "
            f"shape={self.thumbnail.shape})"
        )


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Face bounding box in thumbnail pixel coordinates."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class FaceDetection:
    """
    A single detected face.

    Attributes:
        confidence: Detector confidence in [0, 1]
        bounding_box: Location of the face in the frame
        embedding: Identity embedding, present only above the detector's
            confidence floor
    """

    confidence: float
    bounding_box: BoundingBox
    embedding: Optional[Tuple[float, ...]] = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")


@dataclass(frozen=True, slots=True)
class MotionVector:
    """
    Dominant movement relative to the previous sampled frame.

    Attributes:
        direction: Degrees in [0, 360)
        magnitude: Mean displacement in pixels, >= 0
    """

    direction: float
    magnitude: float

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not 0.0 <= self.direction < 360.0:
            raise ValueError(f"direction must be in [0, 360), got {self.direction}")
        if self.magnitude < 0:
            raise ValueError("magnitude must be non-negative")


@dataclass(frozen=True, slots=True)
class FrameSignals:
    """
    Extracted signals for one FrameSample.

    Attributes:
        timestamp: Timestamp of the source sample (used for alignment)
        keyframe_hash: Perceptual hash string ("" when hashing failed)
        ocr_tokens: Case-normalized on-screen text tokens
        faces: Detected faces, possibly empty
        motion_vector: Movement since the previous sample (motionless on
            the first frame), None when flow could not be computed
    """

    timestamp: float
    keyframe_hash: str = ""
    ocr_tokens: FrozenSet[str] = frozenset()
    faces: Tuple[FaceDetection, ...] = ()
    motion_vector: Optional[MotionVector] = None

    def __repr__(self) -> str:
        return (
            f"FrameSignals(t={self.timestamp:.2f}, "
            f"hash={self.keyframe_hash[:8]}.., "
            f"tokens={len(self.ocr_tokens)}, faces={len(self.faces)}, "
            f"motion={self.motion_vector})"
        )
