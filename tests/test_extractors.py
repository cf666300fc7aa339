"""
Extractor Tests
===============

Individual backends and the concurrent extraction pipeline.
"""

import asyncio
import threading
import time
from types import SimpleNamespace

import numpy as np
import pytest

from conftest import make_sample_set, textured_frame
from copyright_matcher.errors import RateLimitedError, SourceUnavailableError
from copyright_matcher.extractors import (
    DifferenceHasher,
    FarnebackMotionExtractor,
    MockFaceExtractor,
    MockTextExtractor,
    SignalExtractionPipeline,
    VisionTextExtractor,
    create_extraction_pipeline,
    normalize_tokens,
)
from copyright_matcher.extractors.ocr import retry_delay_seconds
from copyright_matcher.config import Settings
from copyright_matcher.matching.comparators import hash_score
from copyright_matcher.models.frames import FrameSample, MotionVector


def sample(frame, t=0.0, interval=1.0):
    return FrameSample(timestamp=t, interval=interval, thumbnail=frame)


class TestDifferenceHasher:

    def test_fixed_length_bit_string(self, frame):
        hasher = DifferenceHasher(hash_size=8)

        value = hasher.extract(sample(frame))

        assert len(value) == hasher.hash_length == 64
        assert set(value) <= {"0", "1"}

    def test_same_frame_same_hash(self, frame):
        hasher = DifferenceHasher()
        assert hasher.extract(sample(frame)) == hasher.extract(sample(frame.copy()))

    def test_locality(self, frame, other_frame):
        hasher = DifferenceHasher()
        original = hasher.extract(sample(frame))
        # Re-encode-like degradation: slight brightness shift and blur
        degraded = np.clip(frame.astype(np.int16) + 6, 0, 255).astype(np.uint8)

        near = hash_score(original, hasher.extract(sample(degraded)))
        far = hash_score(original, hasher.extract(sample(other_frame)))

        assert near > far
        assert near >= 0.9


class TestTextExtraction:

    def test_normalize_tokens(self):
        tokens = normalize_tokens("FOLLOW @Creator_Official | New EP! a", min_token_length=2)
        assert tokens == frozenset({"follow", "creator", "official", "new", "ep"})

    def test_mock_returns_configured_tokens(self, frame):
        extractor = MockTextExtractor(tokens=["Official", "Channel"])
        assert extractor.extract(sample(frame)) == frozenset({"official", "channel"})

    def test_mock_without_tokens_finds_no_text(self, frame):
        assert MockTextExtractor().extract(sample(frame)) == frozenset()

    def test_retry_delay_from_error_details(self):
        delay = SimpleNamespace(seconds=30, nanos=500_000_000)
        error = SimpleNamespace(details=[SimpleNamespace(), SimpleNamespace(retry_delay=delay)])

        assert retry_delay_seconds(error) == pytest.approx(30.5)
        assert retry_delay_seconds(RuntimeError("quota")) is None

    def test_vision_quota_error_keeps_cause_and_hint(self, frame, monkeypatch):
        pytest.importorskip("google.cloud.vision")
        from google.api_core import exceptions as api_exceptions

        quota = api_exceptions.ResourceExhausted(
            "quota exceeded",
            details=[SimpleNamespace(retry_delay=SimpleNamespace(seconds=12, nanos=0))],
        )

        class QuotaClient:
            def text_detection(self, image):
                raise quota

        monkeypatch.setattr(VisionTextExtractor, "_init_client", lambda self, path: None)
        extractor = VisionTextExtractor()
        extractor._client = QuotaClient()

        with pytest.raises(RateLimitedError) as exc_info:
            extractor.extract(sample(frame))

        assert exc_info.value.retry_after_seconds == 12.0
        assert exc_info.value.__cause__ is quota
        assert extractor.get_metrics()["api_error_count"] == 1


class TestMockFaces:

    def test_embedding_is_unit_length(self, frame):
        extractor = MockFaceExtractor(embedding_dim=64)

        faces = extractor.extract(sample(frame))

        assert len(faces) == 1
        assert len(faces[0].embedding) == 64
        assert np.linalg.norm(faces[0].embedding) == pytest.approx(1.0)

    def test_flat_frame_has_no_faces(self):
        flat = np.full((120, 160, 3), 128, dtype=np.uint8)
        assert MockFaceExtractor().extract(sample(flat)) == ()

    def test_no_embedding_below_confidence_floor(self, frame):
        extractor = MockFaceExtractor(confidence=0.3, confidence_floor=0.5)

        faces = extractor.extract(sample(frame))

        assert faces[0].confidence == 0.3
        assert faces[0].embedding is None


class TestFarnebackMotion:

    def test_first_frame_is_motionless(self, frame):
        motion = FarnebackMotionExtractor().extract(None, sample(frame))

        assert motion == MotionVector(direction=0.0, magnitude=0.0)

    def test_still_scene(self, frame):
        motion = FarnebackMotionExtractor().extract(sample(frame), sample(frame, t=1.0))
        assert motion.magnitude < 0.1

    def test_rightward_pan(self):
        base = textured_frame(seed=11)
        shifted = np.roll(base, 3, axis=1)

        motion = FarnebackMotionExtractor().extract(sample(base), sample(shifted, t=1.0))

        assert motion.magnitude > 0.5
        # Rightward is 0 degrees
        assert min(motion.direction, 360.0 - motion.direction) < 45.0

    def test_different_shapes_are_resized(self, frame):
        small = textured_frame(seed=1, width=80, height=60)
        motion = FarnebackMotionExtractor().extract(sample(small), sample(frame, t=1.0))
        assert motion is not None


class CountingHasher:

    hash_length = 4

    def __init__(self):
        self.calls = 0
        self._lock = threading.Lock()

    def extract(self, sample):
        with self._lock:
            self.calls += 1
        return "0101"


class RecordingMotion:

    def extract(self, previous, current):
        if previous is None:
            return None
        return MotionVector(direction=90.0, magnitude=current.timestamp - previous.timestamp)


class FailingText:

    def extract(self, sample):
        raise RuntimeError("OCR model crashed")


class SlowFaces:

    def extract(self, sample):
        time.sleep(0.5)
        return ()


class RaisingText:

    def __init__(self, error):
        self.error = error

    def extract(self, sample):
        raise self.error


def pipeline(**overrides):
    parts = dict(
        hasher=CountingHasher(),
        text_extractor=MockTextExtractor(tokens=["promo"]),
        face_extractor=MockFaceExtractor(),
        motion_extractor=RecordingMotion(),
    )
    parts.update(overrides)
    return SignalExtractionPipeline(**parts)


def two_interval_set():
    frames = {t: textured_frame(seed=t) for t in range(5)}
    return make_sample_set(
        "clip.mp4",
        {
            1.0: [(float(t), frames[t]) for t in range(5)],
            2.0: [(float(t), frames[t]) for t in (0, 2, 4)],
        },
    )


class TestSignalExtractionPipeline:

    def test_extracts_every_sample(self):
        p = pipeline()

        signals = asyncio.run(p.extract(two_interval_set()))

        assert [s.timestamp for s in signals[1.0]] == [0.0, 1.0, 2.0, 3.0, 4.0]
        assert [s.timestamp for s in signals[2.0]] == [0.0, 2.0, 4.0]
        assert all(s.keyframe_hash == "0101" for s in signals[1.0])
        assert all(s.ocr_tokens == frozenset({"promo"}) for s in signals[2.0])

    def test_shared_instants_extracted_once(self):
        hasher = CountingHasher()

        asyncio.run(pipeline(hasher=hasher).extract(two_interval_set()))

        assert hasher.calls == 5

    def test_motion_is_per_interval(self):
        signals = asyncio.run(pipeline().extract(two_interval_set()))

        assert signals[1.0][0].motion_vector is None
        assert signals[1.0][2].motion_vector.magnitude == pytest.approx(1.0)
        assert signals[2.0][1].motion_vector.magnitude == pytest.approx(2.0)

    def test_failed_signal_degrades_to_empty(self):
        p = pipeline(text_extractor=FailingText())

        signals = asyncio.run(p.extract(two_interval_set()))

        assert all(s.ocr_tokens == frozenset() for s in signals[1.0])
        assert all(s.keyframe_hash == "0101" for s in signals[1.0])
        assert p.get_metrics()["failures"]["ocr"] == 5

    def test_timeout_degrades_to_empty(self):
        set_ = make_sample_set("clip.mp4", {1.0: [(0.0, textured_frame(seed=1))]})
        p = pipeline(face_extractor=SlowFaces(), timeouts={"face": 0.05})

        signals = asyncio.run(p.extract(set_))

        assert signals[1.0][0].faces == ()
        assert signals[1.0][0].keyframe_hash == "0101"
        assert p.get_metrics()["timeouts"]["face"] == 1

    @pytest.mark.parametrize(
        "error",
        [RateLimitedError("vision-ocr"), SourceUnavailableError("clip.mp4", "stream ended")],
    )
    def test_scan_level_errors_propagate(self, error):
        p = pipeline(text_extractor=RaisingText(error))

        with pytest.raises(type(error)):
            asyncio.run(p.extract(two_interval_set()))

    def test_factory_uses_configured_backends(self):
        settings = Settings.model_validate({
            "ocr": {"backend": "mock", "mock_tokens": ["Creator"]},
            "hashing": {"hash_size": 16},
        })

        p = create_extraction_pipeline(settings)
        set_ = make_sample_set("a.png", {1.0: [(0.0, textured_frame(seed=4))]})
        signals = asyncio.run(p.extract(set_))

        assert len(signals[1.0][0].keyframe_hash) == 256
        assert signals[1.0][0].ocr_tokens == frozenset({"creator"})
        assert p.timeouts["ocr"] == settings.ocr.timeout_seconds

    def test_factory_rejects_unknown_backend(self):
        settings = Settings.model_validate({"faces": {"backend": "telepathy"}})
        with pytest.raises(ValueError):
            create_extraction_pipeline(settings)
