"""
Matching Module
===============

Comparison of extracted signals.

This module provides:
    - Pure per-signal comparators (hash, text, face, motion)
    - Timestamp alignment of sampled sequences
    - Weighted fusion, aggregation and data-quality classification
"""

from copyright_matcher.matching.comparators import (
    cosine_similarity,
    face_score,
    hash_score,
    motion_score,
    text_score,
)
from copyright_matcher.matching.alignment import AlignedPair, align_frames
from copyright_matcher.matching.fusion import (
    MatchAssessment,
    MatchClassifier,
    aggregate,
    classify_data_quality,
    compare_signals,
)

__all__ = [
    # Comparators
    "hash_score",
    "text_score",
    "cosine_similarity",
    "face_score",
    "motion_score",
    # Alignment
    "AlignedPair",
    "align_frames",
    # Fusion
    "compare_signals",
    "aggregate",
    "classify_data_quality",
    "MatchAssessment",
    "MatchClassifier",
]
