"""
Fusion & Classification
=======================

Combines per-signal scores into one similarity and classifies the
evidence behind it.

Formulas:
    overall   = w_k·keyframe + w_o·ocr + w_f·face + w_m·motion
    similarity = mean(overall) over all aligned frame pairs

Data Quality:
    0 aligned pairs              -> insufficient
    < min_aligned_pairs          -> limited
    otherwise                    -> verified

The weights are a policy object (FusionWeights) validated to sum to 1.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

from copyright_matcher.config import FusionWeights
from copyright_matcher.matching.alignment import AlignedPair, align_frames
from copyright_matcher.matching.comparators import (
    face_score,
    hash_score,
    motion_score,
    text_score,
)
from copyright_matcher.models.comparison import SignalComparison
from copyright_matcher.models.frames import FrameSignals
from copyright_matcher.models.match import DataQuality


logger = logging.getLogger(__name__)


def compare_signals(
    original: FrameSignals,
    candidate: FrameSignals,
    weights: FusionWeights,
) -> SignalComparison:
    """Compare two frames signal by signal and fuse the scores."""
    keyframe = hash_score(original.keyframe_hash, candidate.keyframe_hash)
    ocr = text_score(original.ocr_tokens, candidate.ocr_tokens)
    face = face_score(original.faces, candidate.faces)
    motion = motion_score(original.motion_vector, candidate.motion_vector)

    overall = (
        weights.keyframe * keyframe
        + weights.ocr * ocr
        + weights.face * face
        + weights.motion * motion
    )

    return SignalComparison(
        keyframe_score=keyframe,
        ocr_score=ocr,
        face_score=face,
        motion_score=motion,
        # Float rounding can push a perfect sum just past 1
        overall_score=min(1.0, max(0.0, overall)),
    )


def aggregate(comparisons: Sequence[SignalComparison]) -> SignalComparison:
    """
    Mean of each score over a set of comparisons.

    An empty set aggregates to all zeros.
    """
    if not comparisons:
        return SignalComparison(0.0, 0.0, 0.0, 0.0, 0.0)

    n = len(comparisons)

    def mean(name: str) -> float:
        return min(1.0, max(0.0, sum(getattr(c, name) for c in comparisons) / n))

    return SignalComparison(
        keyframe_score=mean("keyframe_score"),
        ocr_score=mean("ocr_score"),
        face_score=mean("face_score"),
        motion_score=mean("motion_score"),
        overall_score=mean("overall_score"),
    )


def classify_data_quality(aligned_pairs: int, min_aligned_pairs: int) -> DataQuality:
    """Label the sufficiency of the aligned evidence."""
    if aligned_pairs <= 0:
        return DataQuality.INSUFFICIENT
    if aligned_pairs < min_aligned_pairs:
        return DataQuality.LIMITED
    return DataQuality.VERIFIED


@dataclass(frozen=True)
class MatchAssessment:
    """
    Outcome of comparing two sets of sampled sequences.

    Attributes:
        breakdown: Per-signal and overall means over all aligned pairs
        aligned_pairs: Number of pairs that contributed
        data_quality: Sufficiency label derived from aligned_pairs
        is_match: similarity_score reached the match threshold
    """

    breakdown: SignalComparison
    aligned_pairs: int
    data_quality: DataQuality
    is_match: bool

    @property
    def similarity_score(self) -> float:
        return self.breakdown.overall_score


class MatchClassifier:
    """
    Aligns, compares and classifies original vs candidate signals.

    Attributes:
        weights: Fusion weights policy
        tolerance_seconds: Alignment window
        min_aligned_pairs: Pairs needed for verified data quality
        match_threshold: Similarity at or above which is_match is set

    Example:
        classifier = MatchClassifier(FusionWeights())
        assessment = classifier.assess({1.0: original}, {1.0: candidate})
        assessment.similarity_score, assessment.data_quality
    """

    def __init__(
        self,
        weights: FusionWeights,
        tolerance_seconds: float = 2.0,
        min_aligned_pairs: int = 5,
        match_threshold: float = 0.6,
    ) -> None:
        self.weights = weights
        self.tolerance_seconds = tolerance_seconds
        self.min_aligned_pairs = min_aligned_pairs
        self.match_threshold = match_threshold

        logger.info(
            f"MatchClassifier initialized: weights={weights.as_dict()}, "
            f"tolerance={tolerance_seconds}s, min_pairs={min_aligned_pairs}, "
            f"threshold={match_threshold}"
        )

    @classmethod
    def from_config(cls, fusion_config) -> "MatchClassifier":
        return cls(
            weights=fusion_config.weights,
            tolerance_seconds=fusion_config.tolerance_seconds,
            min_aligned_pairs=fusion_config.min_aligned_pairs,
            match_threshold=fusion_config.match_threshold,
        )

    def align(
        self,
        original: Dict[float, Sequence[FrameSignals]],
        candidate: Dict[float, Sequence[FrameSignals]],
    ) -> List[AlignedPair]:
        """Align sequences interval by interval and pool the pairs."""
        pairs: List[AlignedPair] = []
        for interval in sorted(original):
            if interval not in candidate:
                continue
            pairs.extend(
                align_frames(original[interval], candidate[interval], self.tolerance_seconds)
            )
        return pairs

    def assess(
        self,
        original: Dict[float, Sequence[FrameSignals]],
        candidate: Dict[float, Sequence[FrameSignals]],
    ) -> MatchAssessment:
        """
        Score a candidate against an original.

        Args:
            original: Interval -> original frame signals
            candidate: Interval -> candidate frame signals

        Returns:
            MatchAssessment
        """
        pairs = self.align(original, candidate)
        comparisons = [
            compare_signals(pair.original, pair.candidate, self.weights)
            for pair in pairs
        ]
        breakdown = aggregate(comparisons)
        quality = classify_data_quality(len(pairs), self.min_aligned_pairs)

        assessment = MatchAssessment(
            breakdown=breakdown,
            aligned_pairs=len(pairs),
            data_quality=quality,
            is_match=len(pairs) > 0 and breakdown.overall_score >= self.match_threshold,
        )

        logger.debug(
            f"Assessment: pairs={len(pairs)}, quality={quality.value}, "
            f"scores={breakdown.to_dict()}"
        )
        return assessment
