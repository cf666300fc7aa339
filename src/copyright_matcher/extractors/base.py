"""
Extractor Protocols
===================

Capability interfaces for the four per-frame signal extractors.

Every backend (deterministic mock, local model, hosted API) implements
one of these protocols, so the comparators and the fusion layer never
change when a backend is swapped.

Rules:
    - Methods are synchronous; the pipeline runs them in worker threads
    - "Nothing found" is an empty value, not an exception
    - RateLimitedError and SourceUnavailableError may be raised and are
      propagated by the pipeline; any other error degrades the signal
"""

from typing import FrozenSet, Optional, Protocol, Tuple

from copyright_matcher.models.frames import FaceDetection, FrameSample, MotionVector


class KeyframeHasher(Protocol):
    """Produces a fixed-length, locality-preserving fingerprint string."""

    @property
    def hash_length(self) -> int:
        ...

    def extract(self, sample: FrameSample) -> str:
        ...


class TextExtractor(Protocol):
    """Produces normalized on-screen text tokens."""

    def extract(self, sample: FrameSample) -> FrozenSet[str]:
        ...


class FaceExtractor(Protocol):
    """Produces face detections with optional identity embeddings."""

    def extract(self, sample: FrameSample) -> Tuple[FaceDetection, ...]:
        ...


class MotionExtractor(Protocol):
    """Produces the movement between the previous and current sample."""

    def extract(
        self,
        previous: Optional[FrameSample],
        current: FrameSample,
    ) -> Optional[MotionVector]:
        ...
