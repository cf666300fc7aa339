"""
Fusion Tests
============

Weighted fusion, aggregation, data-quality classification and the
identical-sequence scenario.
"""

import itertools

import pytest

from copyright_matcher.config import FusionWeights
from copyright_matcher.matching.fusion import (
    MatchClassifier,
    aggregate,
    classify_data_quality,
    compare_signals,
)
from copyright_matcher.models.comparison import SignalComparison
from copyright_matcher.models.frames import (
    BoundingBox,
    FaceDetection,
    FrameSignals,
    MotionVector,
)
from copyright_matcher.models.match import DataQuality


FACE = FaceDetection(
    confidence=0.97,
    bounding_box=BoundingBox(x=10, y=12, width=40, height=40),
    embedding=(0.6, 0.8, 0.0),
)


def full_signals(t, hash_value="1100110011001100", tokens=("official", "creator")):
    return FrameSignals(
        timestamp=t,
        keyframe_hash=hash_value,
        ocr_tokens=frozenset(tokens),
        faces=(FACE,),
        motion_vector=MotionVector(direction=0.0, magnitude=0.0),
    )


class TestCompareSignals:

    def test_reference_weighting(self):
        weights = FusionWeights()
        original = full_signals(0.0)
        candidate = FrameSignals(
            timestamp=0.0,
            keyframe_hash="1100110011001100",
            ocr_tokens=frozenset(),
            faces=(),
            motion_vector=None,
        )

        comparison = compare_signals(original, candidate, weights)

        assert comparison.keyframe_score == 1.0
        assert comparison.ocr_score == 0.0
        assert comparison.face_score == 0.0
        assert comparison.motion_score == 0.0
        assert comparison.overall_score == pytest.approx(0.4)

    def test_empty_signals_score_zero(self):
        comparison = compare_signals(FrameSignals(0.0), FrameSignals(0.0), FusionWeights())
        assert comparison.overall_score == 0.0

    def test_overall_bounded_for_any_signal_combination(self):
        variants = [
            FrameSignals(0.0),
            full_signals(0.0),
            full_signals(0.0, hash_value="0011001100110011", tokens=("other",)),
            FrameSignals(0.0, keyframe_hash="01", motion_vector=MotionVector(359.0, 50.0)),
        ]
        for a, b in itertools.product(variants, repeat=2):
            comparison = compare_signals(a, b, FusionWeights())
            assert 0.0 <= comparison.overall_score <= 1.0


class TestRebalancedWeights:

    @pytest.mark.parametrize("signal", ["keyframe", "ocr", "face", "motion"])
    @pytest.mark.parametrize("weight", [0.0, 0.1, 0.55, 1.0])
    def test_rebalanced_weights_keep_scores_bounded(self, signal, weight):
        weights = FusionWeights().rebalanced(signal, weight)
        total = sum(weights.as_dict().values())
        assert total == pytest.approx(1.0)

        comparison = compare_signals(full_signals(0.0), full_signals(0.0), weights)
        assert 0.0 <= comparison.overall_score <= 1.0

    def test_rebalance_is_proportional(self):
        weights = FusionWeights().rebalanced("keyframe", 0.7)
        assert weights.keyframe == pytest.approx(0.7)
        assert weights.ocr == pytest.approx(0.1)
        assert weights.face == pytest.approx(0.1)
        assert weights.motion == pytest.approx(0.1)


class TestAggregate:

    def test_mean_per_signal(self):
        result = aggregate([
            SignalComparison(1.0, 0.0, 0.5, 0.0, 0.5),
            SignalComparison(0.0, 1.0, 0.5, 1.0, 0.7),
        ])
        assert result.keyframe_score == pytest.approx(0.5)
        assert result.ocr_score == pytest.approx(0.5)
        assert result.face_score == pytest.approx(0.5)
        assert result.motion_score == pytest.approx(0.5)
        assert result.overall_score == pytest.approx(0.6)

    def test_empty_aggregate_is_zero(self):
        assert aggregate([]).overall_score == 0.0


class TestDataQuality:

    @pytest.mark.parametrize(
        "pairs,expected",
        [
            (0, DataQuality.INSUFFICIENT),
            (1, DataQuality.LIMITED),
            (4, DataQuality.LIMITED),
            (5, DataQuality.VERIFIED),
            (40, DataQuality.VERIFIED),
        ],
    )
    def test_classification(self, pairs, expected):
        assert classify_data_quality(pairs, min_aligned_pairs=5) == expected


class TestMatchClassifier:

    def test_identical_sequences_score_one_and_verified(self):
        sequence = [full_signals(float(t)) for t in range(10)]
        classifier = MatchClassifier(FusionWeights(), min_aligned_pairs=5)

        assessment = classifier.assess({1.0: sequence}, {1.0: list(sequence)})

        assert assessment.similarity_score == pytest.approx(1.0)
        assert assessment.data_quality == DataQuality.VERIFIED
        assert assessment.aligned_pairs == 10
        assert assessment.is_match

    def test_high_score_with_few_pairs_is_limited(self):
        sequence = [full_signals(0.0), full_signals(1.0)]
        classifier = MatchClassifier(FusionWeights(), min_aligned_pairs=5)

        assessment = classifier.assess({1.0: sequence}, {1.0: sequence})

        assert assessment.similarity_score == pytest.approx(1.0)
        assert assessment.data_quality == DataQuality.LIMITED

    def test_no_aligned_pairs_is_insufficient(self):
        classifier = MatchClassifier(FusionWeights(), tolerance_seconds=2.0)

        assessment = classifier.assess(
            {1.0: [full_signals(0.0)]},
            {1.0: [full_signals(30.0)]},
        )

        assert assessment.aligned_pairs == 0
        assert assessment.data_quality == DataQuality.INSUFFICIENT
        assert assessment.similarity_score == 0.0
        assert not assessment.is_match

    def test_pairs_pooled_across_intervals(self):
        classifier = MatchClassifier(FusionWeights(), min_aligned_pairs=5)
        one_second = [full_signals(float(t)) for t in range(4)]
        two_second = [full_signals(0.0), full_signals(2.0)]

        assessment = classifier.assess(
            {1.0: one_second, 2.0: two_second},
            {1.0: one_second, 2.0: two_second},
        )

        assert assessment.aligned_pairs == 6
        assert assessment.data_quality == DataQuality.VERIFIED

    def test_match_threshold(self):
        classifier = MatchClassifier(FusionWeights(), match_threshold=0.6, min_aligned_pairs=1)
        original = {1.0: [full_signals(0.0)]}
        weak = {1.0: [FrameSignals(0.0, keyframe_hash="1100110011001100")]}

        assessment = classifier.assess(original, weak)

        assert assessment.similarity_score == pytest.approx(0.4)
        assert not assessment.is_match
