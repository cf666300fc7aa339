"""
Signal Comparators
==================

One pure comparison function per signal type.

Every comparator takes two same-typed signal values and returns a
similarity in [0, 1]. Comparators never see pixels and hold no state.

Conventions:
    - A missing signal on either side scores 0 (no evidence contributes
      no similarity), never an error
    - Hashes of different length are incomparable and score 0
"""

import logging
from typing import Optional, Sequence

import numpy as np

from copyright_matcher.models.frames import FaceDetection, MotionVector


logger = logging.getLogger(__name__)


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def hash_score(original: str, candidate: str) -> float:
    """
    Normalized Hamming similarity of two fingerprint strings.

    Returns:
        1 - mismatched_positions / length, or 0 for different lengths
        or empty hashes
    """
    if len(original) != len(candidate) or not original:
        return 0.0

    mismatched = sum(1 for a, b in zip(original, candidate) if a != b)
    return 1.0 - mismatched / len(original)


def text_score(original: frozenset, candidate: frozenset) -> float:
    """
    Jaccard similarity of two token sets.

    Empty vs empty is 0.
    """
    union = original | candidate
    if not union:
        return 0.0
    return len(original & candidate) / len(union)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two embeddings, clamped to [0, 1].

    Opposite or orthogonal embeddings are treated as unrelated (0).
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return _clamp(float(np.dot(va, vb) / norm))


def face_score(
    original: Sequence[FaceDetection],
    candidate: Sequence[FaceDetection],
) -> float:
    """
    Mean best-match face similarity.

    For each original face, the best cosine similarity against any
    candidate face is taken; the result is the mean over original faces.
    A face without an embedding contributes 0.
    """
    if not original or not candidate:
        return 0.0

    candidate_embeddings = [f.embedding for f in candidate if f.embedding is not None]

    best_matches = []
    for face in original:
        if face.embedding is None or not candidate_embeddings:
            best_matches.append(0.0)
            continue
        best_matches.append(
            max(cosine_similarity(face.embedding, other) for other in candidate_embeddings)
        )

    return _clamp(sum(best_matches) / len(best_matches))


def motion_score(
    original: Optional[MotionVector],
    candidate: Optional[MotionVector],
) -> float:
    """
    Similarity of two motion vectors.

    score = 1 - mean(|Δdirection| / 180, |Δmagnitude| / max(magnitudes, 1))

    The direction difference is the shorter way around the circle, so
    350° and 10° are 20° apart. Missing motion on either side scores 0.
    """
    if original is None or candidate is None:
        return 0.0

    delta_direction = abs(original.direction - candidate.direction) % 360.0
    delta_direction = min(delta_direction, 360.0 - delta_direction)
    angular = delta_direction / 180.0

    scale = max(original.magnitude, candidate.magnitude, 1.0)
    magnitude = abs(original.magnitude - candidate.magnitude) / scale

    return _clamp(1.0 - (angular + magnitude) / 2.0)
