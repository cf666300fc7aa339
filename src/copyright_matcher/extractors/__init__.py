"""
Extractors Module
=================

Per-frame signal extraction.

This module provides:
    - Capability protocols for the four signal types
    - DifferenceHasher: perceptual keyframe hash
    - MockTextExtractor / VisionTextExtractor: on-screen text tokens
    - MockFaceExtractor / InsightFaceExtractor: faces with embeddings
    - FarnebackMotionExtractor: motion between consecutive samples
    - SignalExtractionPipeline: concurrent extraction over a SampleSet
"""

from copyright_matcher.extractors.base import (
    FaceExtractor,
    KeyframeHasher,
    MotionExtractor,
    TextExtractor,
)
from copyright_matcher.extractors.hashing import DifferenceHasher
from copyright_matcher.extractors.ocr import (
    MockTextExtractor,
    VisionAPIError,
    VisionTextExtractor,
    normalize_tokens,
)
from copyright_matcher.extractors.faces import InsightFaceExtractor, MockFaceExtractor
from copyright_matcher.extractors.motion import FarnebackMotionExtractor
from copyright_matcher.extractors.pipeline import (
    SignalExtractionPipeline,
    create_extraction_pipeline,
)

__all__ = [
    # Protocols
    "KeyframeHasher",
    "TextExtractor",
    "FaceExtractor",
    "MotionExtractor",
    # Backends
    "DifferenceHasher",
    "MockTextExtractor",
    "VisionTextExtractor",
    "VisionAPIError",
    "normalize_tokens",
    "MockFaceExtractor",
    "InsightFaceExtractor",
    "FarnebackMotionExtractor",
    # Pipeline
    "SignalExtractionPipeline",
    "create_extraction_pipeline",
]
